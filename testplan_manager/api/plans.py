"""
Draft and published test plan endpoints: CRUD, publishing, versions, exports
and the project health report.
"""
import logging
from typing import List, Tuple, Union
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from testplan_manager.config import settings
from testplan_manager.constants import EXPORT_MIME_TYPES
from testplan_manager.models.account import SessionIdentity
from testplan_manager.models.enums import ExportFormat, PlanCollection
from testplan_manager.models.issue import Issue
from testplan_manager.models.plan import DraftPlan, PlanContent, PublishedPlan
from testplan_manager.models.test_case import TestCase
from testplan_manager.services import jira_client
from testplan_manager.services.accounts import AccountService
from testplan_manager.services.export import (
    csv_filename,
    export_filename,
    export_issues_csv,
    export_test_cases_csv,
    render,
)
from testplan_manager.services.health_metrics import (
    HealthMetrics,
    compute_health_metrics,
    filter_issues,
    filter_test_cases,
)
from testplan_manager.services.issue_hierarchy import EpicGroup, group_stories_by_epic
from testplan_manager.services.plan_repository import PlanValidationError, TestPlanRepository
from testplan_manager.services.testmo_client import TestMoClient, TestMoClientError
from testplan_manager.services.versioning import diff_summary
from testplan_manager.api.deps import get_accounts, get_repository, require_admin, require_session

logger = logging.getLogger(__name__)

router = APIRouter()

JIRA_HEALTH_NOT_CONFIGURED = "JIRA is not configured for this project."
TESTMO_HEALTH_NOT_CONFIGURED = "TestMo is not configured for this project."


class PublishedPlanView(BaseModel):
    """Read-only published plan with its issues grouped by epic."""

    plan: PublishedPlan = Field(..., description="Published plan record")
    issue_groups: List[EpicGroup] = Field(default_factory=list, description="Stories grouped under their epics")
    browse_url: str = Field(default="", description="Prefix for issue links; append the issue key")


class PlanVersion(BaseModel):
    """One published version of a plan."""

    version: int = Field(..., description="1-based version number, oldest first")
    plan: PublishedPlan
    is_current: bool = Field(..., description="True for the version being viewed")
    changes: str = Field(..., description="Diff summary against the version being viewed")


class HealthReport(BaseModel):
    """Live project health for a published plan."""

    plan_id: str
    plan_name: str
    metrics: HealthMetrics
    issues: List[Issue] = Field(default_factory=list, description="Jira issues after filtering")
    test_cases: List[TestCase] = Field(default_factory=list, description="TestMo cases after filtering")
    jira_error: str = ""
    testmo_error: str = ""


def _get_or_404(
    repository: TestPlanRepository,
    collection: Union[PlanCollection, str],
    plan_id: str
) -> Union[DraftPlan, PublishedPlan]:
    plan = repository.find_by_id(collection, plan_id)
    if plan is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Test plan {plan_id} not found"
        )
    return plan


def _browse_url(accounts: AccountService) -> str:
    instance_url = accounts.get_jira_config().instance_url or settings.jira_instance_url or ""
    return f"{instance_url.rstrip('/')}/browse/" if instance_url else ""


# ----------------------------------------------------------------------
# Drafts
# ----------------------------------------------------------------------

@router.get("/plans/drafts", response_model=List[DraftPlan], response_model_by_alias=True)
def list_drafts(repository: TestPlanRepository = Depends(get_repository)) -> List[DraftPlan]:
    """List all drafts in insertion order."""
    return repository.list_drafts()


@router.post(
    "/plans/drafts",
    response_model=DraftPlan,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED
)
def save_draft(
    plan: PlanContent,
    repository: TestPlanRepository = Depends(get_repository)
) -> DraftPlan:
    """
    Save a draft. A draft with the same name is overwritten in place.

    Raises:
        HTTPException: 400 if the plan name is blank
    """
    try:
        return repository.save_draft(plan)
    except PlanValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/plans/drafts/{plan_id}", response_model=DraftPlan, response_model_by_alias=True)
def get_draft(plan_id: str, repository: TestPlanRepository = Depends(get_repository)) -> DraftPlan:
    return _get_or_404(repository, PlanCollection.DRAFTS, plan_id)


@router.delete("/plans/drafts/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_draft(plan_id: str, repository: TestPlanRepository = Depends(get_repository)) -> Response:
    _get_or_404(repository, PlanCollection.DRAFTS, plan_id)
    repository.delete_draft(plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------------------------------------------------
# Published plans
# ----------------------------------------------------------------------

@router.get("/plans/published", response_model=List[PublishedPlan], response_model_by_alias=True)
def list_published(repository: TestPlanRepository = Depends(get_repository)) -> List[PublishedPlan]:
    """List all published plans in publish order."""
    return repository.list_published()


@router.post(
    "/plans/published",
    response_model=PublishedPlan,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED
)
def publish_plan(
    plan: PlanContent,
    repository: TestPlanRepository = Depends(get_repository),
    identity: SessionIdentity = Depends(require_admin)
) -> PublishedPlan:
    """
    Publish a new version of a plan. Always appends; earlier versions remain.

    Raises:
        HTTPException: 400 if the plan name is blank, 401/403 if not an admin
    """
    try:
        record = repository.publish(plan)
    except PlanValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.info(f"Plan {record.id} published by {identity.username}")
    return record


@router.get("/plans/published/{plan_id}", response_model=PublishedPlanView, response_model_by_alias=True)
def view_published(
    plan_id: str,
    repository: TestPlanRepository = Depends(get_repository),
    accounts: AccountService = Depends(get_accounts)
) -> PublishedPlanView:
    """Published plan with epic/story groups and the Jira browse URL prefix."""
    plan = _get_or_404(repository, PlanCollection.PUBLISHED, plan_id)
    return PublishedPlanView(
        plan=plan,
        issue_groups=group_stories_by_epic(plan.jira_results),
        browse_url=_browse_url(accounts),
    )


@router.get(
    "/plans/published/{plan_id}/versions",
    response_model=List[PlanVersion],
    response_model_by_alias=True
)
def list_versions(
    plan_id: str,
    repository: TestPlanRepository = Depends(get_repository)
) -> List[PlanVersion]:
    """Every published version sharing this plan's name, oldest first."""
    current = _get_or_404(repository, PlanCollection.PUBLISHED, plan_id)
    versions = repository.list_versions(current.test_plan_name)
    return [
        PlanVersion(
            version=index,
            plan=version,
            is_current=version.id == current.id,
            changes=diff_summary(current, version),
        )
        for index, version in enumerate(versions, start=1)
    ]


# ----------------------------------------------------------------------
# Exports
# ----------------------------------------------------------------------

@router.get("/plans/{collection}/{plan_id}/export")
def export_plan(
    collection: PlanCollection,
    plan_id: str,
    fmt: ExportFormat = Query(ExportFormat.MARKDOWN, alias="format", description="markdown or html"),
    repository: TestPlanRepository = Depends(get_repository)
) -> Response:
    """Download a plan as a Markdown or HTML document."""
    plan = _get_or_404(repository, collection, plan_id)
    body = render(plan, fmt)
    filename = export_filename(plan.test_plan_name, fmt)
    return Response(
        content=body,
        media_type=EXPORT_MIME_TYPES[fmt.value],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type=EXPORT_MIME_TYPES["csv"],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/plans/published/{plan_id}/issues.csv")
def export_plan_issues(
    plan_id: str,
    filter_text: str = Query("", alias="filter", description="Case-insensitive filter over key and summary"),
    repository: TestPlanRepository = Depends(get_repository)
) -> Response:
    """Download the Jira issues stored on a published plan as CSV."""
    plan = _get_or_404(repository, PlanCollection.PUBLISHED, plan_id)
    issues = filter_issues(plan.jira_results, filter_text)
    return _csv_response(export_issues_csv(issues), csv_filename(plan.test_plan_name, "issues"))


# ----------------------------------------------------------------------
# Health report
# ----------------------------------------------------------------------

def _load_jira_issues(plan: PublishedPlan, accounts: AccountService) -> Tuple[List[Issue], str]:
    config = accounts.get_jira_config()
    credentials = config.credentials()
    if not plan.project_name or not credentials.is_complete:
        return [], JIRA_HEALTH_NOT_CONFIGURED

    try:
        issues = jira_client.fetch_project_issues(plan.project_name, credentials, config.instance_url or None)
    except jira_client.JiraClientError as e:
        logger.warning(f"Health report JIRA fetch failed for plan {plan.id}: {e.message}")
        return [], e.message or "Failed to load JIRA data"
    return issues, ""


def _load_test_cases(accounts: AccountService) -> Tuple[List[TestCase], str]:
    config = accounts.get_testmo_config()
    if not config.is_complete:
        return [], TESTMO_HEALTH_NOT_CONFIGURED

    try:
        cases = TestMoClient(config.base_url, config.api_key).fetch_cases(config.project_id)
    except TestMoClientError as e:
        logger.warning(f"Health report TestMo fetch failed: {e.message}")
        return [], e.message or "Failed to load TestMo data"
    return cases, ""


def _build_health_report(
    plan: PublishedPlan,
    accounts: AccountService,
    jira_filter: str,
    testmo_filter: str
) -> HealthReport:
    issues, jira_error = _load_jira_issues(plan, accounts)
    cases, testmo_error = _load_test_cases(accounts)
    return HealthReport(
        plan_id=plan.id,
        plan_name=plan.test_plan_name,
        metrics=compute_health_metrics(issues, cases),
        issues=filter_issues(issues, jira_filter),
        test_cases=filter_test_cases(cases, testmo_filter),
        jira_error=jira_error,
        testmo_error=testmo_error,
    )


@router.get("/plans/published/{plan_id}/health", response_model=HealthReport, response_model_by_alias=True)
def health_report(
    plan_id: str,
    jira_filter: str = Query("", description="Filter over issue key and summary"),
    testmo_filter: str = Query("", description="Filter over case id, title and linked issues"),
    repository: TestPlanRepository = Depends(get_repository),
    accounts: AccountService = Depends(get_accounts),
    identity: SessionIdentity = Depends(require_admin)
) -> HealthReport:
    """
    Live project health for a published plan (admins only).

    Metrics cover every fetched issue and case; the filters only narrow the
    returned lists. A missing or failing integration yields an error string
    for its panel rather than an HTTP error.
    """
    plan = _get_or_404(repository, PlanCollection.PUBLISHED, plan_id)
    return _build_health_report(plan, accounts, jira_filter, testmo_filter)


@router.get("/plans/published/{plan_id}/health/jira_report.csv")
def health_jira_csv(
    plan_id: str,
    filter_text: str = Query("", alias="filter"),
    repository: TestPlanRepository = Depends(get_repository),
    accounts: AccountService = Depends(get_accounts),
    identity: SessionIdentity = Depends(require_admin)
) -> Response:
    """Download the filtered live Jira issues as CSV."""
    plan = _get_or_404(repository, PlanCollection.PUBLISHED, plan_id)
    issues, _ = _load_jira_issues(plan, accounts)
    body = export_issues_csv(filter_issues(issues, filter_text))
    return _csv_response(body, csv_filename(plan.test_plan_name, "jira_report"))


@router.get("/plans/published/{plan_id}/health/build_report.csv")
def health_build_csv(
    plan_id: str,
    filter_text: str = Query("", alias="filter"),
    repository: TestPlanRepository = Depends(get_repository),
    accounts: AccountService = Depends(get_accounts),
    identity: SessionIdentity = Depends(require_admin)
) -> Response:
    """Download the filtered TestMo cases as CSV."""
    plan = _get_or_404(repository, PlanCollection.PUBLISHED, plan_id)
    cases, _ = _load_test_cases(accounts)
    body = export_test_cases_csv(filter_test_cases(cases, filter_text))
    return _csv_response(body, csv_filename(plan.test_plan_name, "build_report"))


@router.get("/dashboard", response_model=dict)
def dashboard(
    repository: TestPlanRepository = Depends(get_repository),
    identity: SessionIdentity = Depends(require_session)
) -> dict:
    """Dashboard listing: the user's drafts and every published plan."""
    return {
        "username": identity.username,
        "role": identity.role.value,
        "drafts": [p.model_dump(mode="json", by_alias=True) for p in repository.list_drafts()],
        "published": [p.model_dump(mode="json", by_alias=True) for p in repository.list_published()],
    }
