"""
Read-only view of tracker issues.
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from testplan_manager.models.enums import IssueType


def _name_of(value: Any, attr: str = "name") -> Optional[str]:
    if isinstance(value, dict):
        return value.get(attr)
    return None


class Issue(BaseModel):
    """A Jira issue as used by plans, exports and health metrics."""
    
    key: str = Field(..., description="Issue key, unique within a Jira instance")
    summary: str = Field(default="", description="Issue summary")
    status: str = Field(default="", description="Workflow status name")
    issue_type: str = Field(default="", alias="issueType", description="Issue type name (Epic, Story, Bug, ...)")
    assignee: Optional[str] = Field(default=None, description="Assignee display name")
    priority: Optional[str] = Field(default=None, description="Priority name")
    parent_key: Optional[str] = Field(default=None, alias="parentKey", description="Key of the parent epic")
    parent_summary: Optional[str] = Field(default=None, alias="parentSummary")
    
    class Config:
        populate_by_name = True
        frozen = True
    
    @classmethod
    def from_jira(cls, raw: Dict[str, Any]) -> "Issue":
        """
        Build an Issue from an entry of Jira's native search response.
        
        Args:
            raw: Issue dict with "key" and nested "fields"
            
        Returns:
            Issue with missing nested values defaulted
        """
        fields = raw.get("fields") or {}
        parent = fields.get("parent") or {}
        parent_fields = parent.get("fields") or {}
        return cls(
            key=raw.get("key") or "",
            summary=fields.get("summary") or "",
            status=_name_of(fields.get("status")) or "",
            issue_type=_name_of(fields.get("issuetype")) or "",
            assignee=_name_of(fields.get("assignee"), "displayName"),
            priority=_name_of(fields.get("priority")),
            parent_key=parent.get("key"),
            parent_summary=parent_fields.get("summary"),
        )
    
    @property
    def is_epic(self) -> bool:
        return self.issue_type == IssueType.EPIC
    
    @property
    def is_story(self) -> bool:
        return self.issue_type == IssueType.STORY
