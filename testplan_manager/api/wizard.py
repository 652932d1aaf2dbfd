"""
Plan wizard endpoints.

Each wizard is an in-memory PlanWizard keyed by id; every action returns the
wizard snapshot. Input errors map to 400, actions invalid for the current
step to 409 and unknown wizard or plan ids to 404. Wizards are not persisted;
the least recently used one is dropped once MAX_OPEN_WIZARDS are open.
"""
import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from testplan_manager.constants import EXPORT_MIME_TYPES, MAX_OPEN_WIZARDS
from testplan_manager.models.account import JiraCredentials, SessionIdentity
from testplan_manager.models.enums import ExportFormat, ModalFlag, PlanCollection, WizardStep
from testplan_manager.models.plan import DraftPlan, PublishedPlan
from testplan_manager.services.accounts import AccountService
from testplan_manager.services.export import export_filename, render
from testplan_manager.services.jira_client import JiraClientError
from testplan_manager.services.plan_repository import TestPlanRepository
from testplan_manager.services.wizard import PlanWizard, WizardTransitionError
from testplan_manager.api.deps import get_accounts, get_repository, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wizard")

# Least recently used first; bounded by MAX_OPEN_WIZARDS
_wizards: "OrderedDict[str, PlanWizard]" = OrderedDict()
_wizards_lock = threading.Lock()


class TextInput(BaseModel):
    """Single free-text value submitted for a step."""

    value: str = Field(default="", description="Submitted text")


class ApproachToggle(BaseModel):
    name: str = Field(..., description="Test approach option to add or remove")


class ApproachDetails(BaseModel):
    name: str = Field(..., description="Selected test approach")
    details: str = Field(default="", description="Free-text details for the approach")


class PendingEpic(BaseModel):
    pending: str = Field(default="", description="Epic text not yet added")


class CredentialsInput(BaseModel):
    """Per-wizard Jira credentials; both blank clears the override."""

    email: str = ""
    api_token: str = Field(default="", alias="apiToken")

    class Config:
        populate_by_name = True


class SaveRequest(BaseModel):
    name: Optional[str] = Field(None, description="Save under this name instead of the plan name")


class PublishRequest(BaseModel):
    refresh_issues: bool = Field(default=False, alias="refreshIssues", description="Re-fetch Jira issues first")

    class Config:
        populate_by_name = True


class LoadRequest(BaseModel):
    collection: PlanCollection = Field(..., description="drafts or published")
    plan_id: str = Field(..., alias="planId")

    class Config:
        populate_by_name = True


def _get_wizard(wizard_id: str) -> PlanWizard:
    with _wizards_lock:
        wizard = _wizards.get(wizard_id)
        if wizard is not None:
            _wizards.move_to_end(wizard_id)
    if wizard is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Wizard {wizard_id} not found")
    return wizard


def _apply(action: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a wizard action, mapping its errors to HTTP errors."""
    try:
        return action(*args, **kwargs)
    except WizardTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def reset_wizards() -> None:
    """Drop every wizard session."""
    with _wizards_lock:
        _wizards.clear()


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------

@router.post("", status_code=status.HTTP_201_CREATED)
def create_wizard(
    repository: TestPlanRepository = Depends(get_repository),
    accounts: AccountService = Depends(get_accounts)
) -> Dict[str, Any]:
    """Start a new wizard at name entry."""
    wizard = PlanWizard(repository, accounts)
    with _wizards_lock:
        _wizards[wizard.id] = wizard
        while len(_wizards) > MAX_OPEN_WIZARDS:
            evicted_id, _ = _wizards.popitem(last=False)
            logger.info(f"Wizard {evicted_id} evicted")
    logger.info(f"Wizard {wizard.id} created")
    return wizard.snapshot()


@router.get("/{wizard_id}")
def get_wizard(wizard_id: str) -> Dict[str, Any]:
    """Current wizard state. Reading it advances past an elapsed title display."""
    return _get_wizard(wizard_id).snapshot()


@router.delete("/{wizard_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_wizard(wizard_id: str) -> Response:
    _get_wizard(wizard_id)
    with _wizards_lock:
        _wizards.pop(wizard_id, None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{wizard_id}/new")
def new_plan(wizard_id: str) -> Dict[str, Any]:
    """Discard the plan-in-progress and start over."""
    wizard = _get_wizard(wizard_id)
    wizard.new_plan()
    return wizard.snapshot()


# ----------------------------------------------------------------------
# Steps
# ----------------------------------------------------------------------

@router.post("/{wizard_id}/name")
def submit_name(wizard_id: str, body: TextInput) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.submit_name, body.value)
    return wizard.snapshot()


@router.post("/{wizard_id}/sections/{step}/edit")
def edit_section(wizard_id: str, step: WizardStep) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.edit_section, step)
    return wizard.snapshot()


@router.post("/{wizard_id}/cancel")
def cancel_section(wizard_id: str) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.cancel_section)
    return wizard.snapshot()


@router.post("/{wizard_id}/introduction")
def submit_introduction(wizard_id: str, body: TextInput) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.submit_introduction, body.value)
    return wizard.snapshot()


@router.post("/{wizard_id}/project-discovery")
def submit_project_discovery(wizard_id: str, body: TextInput) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.submit_project_discovery, body.value)
    return wizard.snapshot()


@router.post("/{wizard_id}/project-name")
def submit_project_name(wizard_id: str, body: TextInput) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.submit_project_name, body.value)
    return wizard.snapshot()


@router.post("/{wizard_id}/test-approach/toggle")
def toggle_test_approach(wizard_id: str, body: ApproachToggle) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.toggle_test_approach, body.name)
    return wizard.snapshot()


@router.put("/{wizard_id}/test-approach/details")
def update_section_details(wizard_id: str, body: ApproachDetails) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.update_section_details, body.name, body.details)
    return wizard.snapshot()


@router.post("/{wizard_id}/test-approach/done")
def finish_test_approach(wizard_id: str) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.finish_test_approach)
    return wizard.snapshot()


@router.post("/{wizard_id}/epics")
def add_epic(wizard_id: str, body: TextInput) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    _apply(wizard.add_epic, body.value)
    return wizard.snapshot()


@router.post("/{wizard_id}/epics/done")
def finish_epics(wizard_id: str, body: Optional[PendingEpic] = None) -> Dict[str, Any]:
    """
    Finish epic entry and fetch the project's Jira issues.

    Jira problems do not fail the request; they show up in jira_error and
    config_required on the returned snapshot.
    """
    wizard = _get_wizard(wizard_id)
    _apply(wizard.finish_epics, body.pending if body else "")
    return wizard.snapshot()


@router.put("/{wizard_id}/credentials")
def set_credentials(wizard_id: str, body: CredentialsInput) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    if not body.email and not body.api_token:
        wizard.set_credentials(None)
    else:
        wizard.set_credentials(JiraCredentials(email=body.email, api_token=body.api_token))
    return wizard.snapshot()


# ----------------------------------------------------------------------
# Modals and persistence
# ----------------------------------------------------------------------

@router.post("/{wizard_id}/modals/{modal}/open")
def open_modal(wizard_id: str, modal: ModalFlag) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    wizard.open_modal(modal)
    return wizard.snapshot()


@router.post("/{wizard_id}/modals/{modal}/close")
def close_modal(wizard_id: str, modal: ModalFlag) -> Dict[str, Any]:
    wizard = _get_wizard(wizard_id)
    wizard.close_modal(modal)
    return wizard.snapshot()


@router.post("/{wizard_id}/save", response_model=DraftPlan, response_model_by_alias=True)
def save_draft(wizard_id: str, body: Optional[SaveRequest] = None) -> DraftPlan:
    """Save the plan-in-progress as a draft (overwrites a draft of the same name)."""
    wizard = _get_wizard(wizard_id)
    return _apply(wizard.save_draft, body.name if body else None)


@router.post("/{wizard_id}/publish", response_model=PublishedPlan, response_model_by_alias=True)
def publish(
    wizard_id: str,
    body: Optional[PublishRequest] = None,
    identity: SessionIdentity = Depends(require_admin)
) -> PublishedPlan:
    """Publish a new version of the plan-in-progress (admins only)."""
    wizard = _get_wizard(wizard_id)
    try:
        record = _apply(wizard.publish, refresh_issues=body.refresh_issues if body else False)
    except JiraClientError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    logger.info(f"Wizard {wizard_id} published plan {record.id} by {identity.username}")
    return record


@router.post("/{wizard_id}/load")
def load_plan(
    wizard_id: str,
    body: LoadRequest,
    repository: TestPlanRepository = Depends(get_repository)
) -> Dict[str, Any]:
    """Replace the plan-in-progress with a saved draft or published plan."""
    wizard = _get_wizard(wizard_id)
    record = repository.find_by_id(body.collection, body.plan_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Test plan {body.plan_id} not found")
    wizard.load_plan(record)
    return wizard.snapshot()


@router.get("/{wizard_id}/export")
def export_plan(
    wizard_id: str,
    fmt: ExportFormat = Query(ExportFormat.MARKDOWN, alias="format")
) -> Response:
    """Download the plan-in-progress as Markdown or HTML."""
    plan = _get_wizard(wizard_id).plan
    filename = export_filename(plan.test_plan_name, fmt)
    return Response(
        content=render(plan, fmt),
        media_type=EXPORT_MIME_TYPES[fmt.value],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
