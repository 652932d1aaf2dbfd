"""
Test plan records: plan-in-progress content, drafts and published snapshots.
"""
from datetime import datetime, timezone
from typing import List
from pydantic import BaseModel, Field
from testplan_manager.models.issue import Issue


def utcnow() -> datetime:
    """Timezone-aware current time used for all plan timestamps."""
    return datetime.now(timezone.utc)


class TestApproachSection(BaseModel):
    """A named testing method applied to the plan, with free-text details."""
    
    __test__ = False  # not a pytest test class
    
    name: str = Field(..., description="One of TEST_APPROACH_OPTIONS")
    details: str = Field(default="", description="Free-text details for this approach")


class PlanContent(BaseModel):
    """Fields a user edits through the wizard (no identity or timestamps)."""
    
    test_plan_name: str = Field(default="", alias="testPlanName")
    introduction: str = ""
    project_disco: str = Field(default="", alias="projectDisco")
    project_name: str = Field(default="", alias="projectName")
    test_approach: List[TestApproachSection] = Field(default_factory=list, alias="testApproach")
    epics: List[str] = Field(default_factory=list, description="Free-text epic notes")
    jira_results: List[Issue] = Field(default_factory=list, alias="jiraResults")
    
    class Config:
        populate_by_name = True
    
    def content(self) -> "PlanContent":
        """Copy of just the editable fields."""
        return PlanContent.model_validate(
            self.model_dump(include=set(PlanContent.model_fields), by_alias=True)
        )


class DraftPlan(PlanContent):
    """Mutable, name-deduplicated saved plan."""
    
    id: str = Field(..., description="Opaque unique id, immutable once assigned")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")


class PublishedPlan(DraftPlan):
    """Append-only snapshot of a plan at publish time."""
    
    published_at: datetime = Field(default_factory=utcnow, alias="publishedAt")
