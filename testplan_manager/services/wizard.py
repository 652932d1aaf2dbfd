"""
Plan wizard: the step state machine that drives test plan data entry.

The current step is a single WizardStep value, so exactly one step is active
at a time. Modals (save, load, publish, update section) are an independent
set of flags that may be open over any step.

Flow:
    NAME_ENTRY -> TITLE_DISPLAY -(delay)-> PLAN_VIEW
    PLAN_VIEW -> <section step> -> PLAN_VIEW   (sections are edited independently)
    EPIC_ENTRY "done" fetches Jira issues, then PLAN_VIEW whatever the outcome
"""
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union
from testplan_manager.config import settings
from testplan_manager.constants import TEST_APPROACH_OPTIONS
from testplan_manager.models.account import JiraCredentials
from testplan_manager.models.enums import ModalFlag, WizardStep
from testplan_manager.models.issue import Issue
from testplan_manager.models.plan import DraftPlan, PlanContent, PublishedPlan, TestApproachSection
from testplan_manager.services import jira_client
from testplan_manager.services.accounts import AccountService
from testplan_manager.services.plan_repository import TestPlanRepository

logger = logging.getLogger(__name__)

IssueFetcher = Callable[[str, JiraCredentials, Optional[str]], List[Issue]]

SECTION_STEPS = (
    WizardStep.INTRODUCTION,
    WizardStep.PROJECT_DISCOVERY,
    WizardStep.PROJECT_NAME,
    WizardStep.TEST_APPROACH,
    WizardStep.EPIC_ENTRY,
)

JIRA_NOT_CONFIGURED = "JIRA is not configured. Add your JIRA instance URL, email and API token in the admin settings."


class WizardValidationError(ValueError):
    """Raised when a step submission is missing required input."""
    pass


class WizardTransitionError(Exception):
    """Raised when an action is not valid for the current step."""
    pass


class PlanWizard:
    """State machine for building one plan-in-progress."""

    def __init__(
        self,
        repository: TestPlanRepository,
        accounts: AccountService,
        title_delay: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        issue_fetcher: Optional[IssueFetcher] = None
    ):
        """
        Initialize a wizard at NAME_ENTRY with an empty plan.

        Args:
            repository: Plan repository used for save/publish/load
            accounts: Source of stored Jira configuration
            title_delay: Seconds the title is shown before the plan view
                (default: settings.title_display_seconds)
            clock: Monotonic clock, injectable for tests
            issue_fetcher: Callable(project_name, credentials, instance_url);
                defaults to jira_client.fetch_project_issues
        """
        self.id = str(uuid.uuid4())
        self.repository = repository
        self.accounts = accounts
        self.title_delay = settings.title_display_seconds if title_delay is None else title_delay
        self.clock = clock
        self.issue_fetcher = issue_fetcher
        self.credentials_override: Optional[JiraCredentials] = None
        self.new_plan()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def new_plan(self) -> None:
        """Discard the plan-in-progress and return to NAME_ENTRY."""
        self._step = WizardStep.NAME_ENTRY
        self._title_shown_at: Optional[float] = None
        self._plan = PlanContent()
        self.modals: Set[ModalFlag] = set()
        self.jira_error = ""
        self.jira_loading = False
        self.config_required = False

    @property
    def step(self) -> WizardStep:
        self.tick()
        return self._step

    @property
    def plan(self) -> PlanContent:
        """Copy of the plan-in-progress."""
        return self._plan.content()

    def tick(self, now: Optional[float] = None) -> WizardStep:
        """Advance past the title display once its delay has elapsed."""
        if self._step == WizardStep.TITLE_DISPLAY and self._title_shown_at is not None:
            now = self.clock() if now is None else now
            if now - self._title_shown_at >= self.title_delay:
                self._go(WizardStep.PLAN_VIEW)
        return self._step

    def _go(self, step: WizardStep) -> None:
        logger.debug(f"Wizard {self.id}: {self._step.value} -> {step.value}")
        self._step = step
        if step != WizardStep.TITLE_DISPLAY:
            self._title_shown_at = None

    def _require(self, *steps: WizardStep) -> None:
        current = self.step
        if current not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise WizardTransitionError(
                f"Action not available at step '{current.value}' (expected: {allowed})"
            )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def submit_name(self, name: str) -> None:
        """Set the plan name and show the title."""
        self._require(WizardStep.NAME_ENTRY)
        if not (name or "").strip():
            raise WizardValidationError("Test plan name is required")
        self._plan.test_plan_name = name.strip()
        self._go(WizardStep.TITLE_DISPLAY)
        self._title_shown_at = self.clock()

    def edit_section(self, step: Union[WizardStep, str]) -> None:
        """Jump from the plan view to a single section's step."""
        step = WizardStep(step)
        self._require(WizardStep.PLAN_VIEW)
        if step not in SECTION_STEPS:
            raise WizardTransitionError(f"'{step.value}' is not an editable section")
        self.config_required = False
        self._go(step)

    def cancel_section(self) -> None:
        """Leave a section step without changing the plan."""
        self._require(*SECTION_STEPS)
        self._go(WizardStep.PLAN_VIEW)

    def submit_introduction(self, text: str) -> None:
        self._require(WizardStep.INTRODUCTION)
        if not (text or "").strip():
            raise WizardValidationError("Introduction is required")
        self._plan.introduction = text
        self._go(WizardStep.PLAN_VIEW)

    def submit_project_discovery(self, text: str) -> None:
        # Project discovery notes are optional
        self._require(WizardStep.PROJECT_DISCOVERY)
        self._plan.project_disco = text or ""
        self._go(WizardStep.PLAN_VIEW)

    def submit_project_name(self, name: str) -> None:
        self._require(WizardStep.PROJECT_NAME)
        if not (name or "").strip():
            raise WizardValidationError("Project name is required")
        self._plan.project_name = name.strip()
        self._go(WizardStep.PLAN_VIEW)

    def toggle_test_approach(self, name: str) -> List[TestApproachSection]:
        """
        Add the named section, or remove it if already present.

        Returns:
            The updated section list
        """
        self._require(WizardStep.TEST_APPROACH)
        if name not in TEST_APPROACH_OPTIONS:
            raise WizardValidationError(f"Unknown test approach: {name}")

        sections = self._plan.test_approach
        if any(s.name == name for s in sections):
            self._plan.test_approach = [s for s in sections if s.name != name]
        else:
            self._plan.test_approach = sections + [TestApproachSection(name=name)]
        return list(self._plan.test_approach)

    def finish_test_approach(self) -> None:
        self._require(WizardStep.TEST_APPROACH)
        self._go(WizardStep.PLAN_VIEW)

    def update_section_details(self, name: str, details: str) -> None:
        """Set a selected section's details and close the update-section modal."""
        section = next((s for s in self._plan.test_approach if s.name == name), None)
        if section is None:
            raise WizardValidationError(f"Test approach '{name}' is not part of this plan")
        section.details = details or ""
        self.modals.discard(ModalFlag.UPDATE_SECTION)

    def add_epic(self, text: str) -> None:
        """Append an epic note; blank input is ignored."""
        self._require(WizardStep.EPIC_ENTRY)
        if (text or "").strip():
            self._plan.epics.append(text)

    def finish_epics(self, pending: str = "") -> None:
        """
        Finish epic entry and enrich the plan with the project's Jira issues.

        Without Jira credentials no request is made and config_required is set.
        A Jira failure is recorded in jira_error. The wizard moves to the plan
        view in every case.
        """
        self._require(WizardStep.EPIC_ENTRY)
        if (pending or "").strip():
            self._plan.epics.append(pending)

        self.jira_error = ""
        self.config_required = False

        credentials, instance_url = self._resolve_jira()
        if credentials is None:
            self.config_required = True
            self.jira_error = JIRA_NOT_CONFIGURED
            logger.info(f"Wizard {self.id}: JIRA fetch skipped, credentials not configured")
            self._go(WizardStep.PLAN_VIEW)
            return

        if not self._plan.project_name.strip():
            self.jira_error = "Project name is required to query JIRA"
            self._go(WizardStep.PLAN_VIEW)
            return

        self.jira_loading = True
        self._plan.jira_results = []
        try:
            self._plan.jira_results = self._fetch(self._plan.project_name, credentials, instance_url)
        except jira_client.JiraClientError as e:
            logger.warning(f"Wizard {self.id}: JIRA fetch failed: {e.message}")
            self.jira_error = e.message
        finally:
            self.jira_loading = False
            self._go(WizardStep.PLAN_VIEW)

    # ------------------------------------------------------------------
    # Jira
    # ------------------------------------------------------------------

    def set_credentials(self, credentials: Optional[JiraCredentials]) -> None:
        """Override the stored Jira credentials for this wizard (None clears it)."""
        self.credentials_override = credentials

    def _resolve_jira(self) -> Tuple[Optional[JiraCredentials], Optional[str]]:
        config = self.accounts.get_jira_config()
        instance_url = config.instance_url or settings.jira_instance_url

        candidates = [
            self.credentials_override,
            config.credentials(),
            JiraCredentials(email=settings.jira_email or "", api_token=settings.jira_api_token or ""),
        ]
        credentials = next((c for c in candidates if c is not None and c.is_complete), None)
        if credentials is None or not instance_url:
            return None, None
        return credentials, instance_url

    def _fetch(self, project_name: str, credentials: JiraCredentials, instance_url: Optional[str]) -> List[Issue]:
        fetcher = self.issue_fetcher or jira_client.fetch_project_issues
        return list(fetcher(project_name, credentials, instance_url))

    def refresh_issues(self) -> None:
        """
        Re-fetch the project's Jira issues in place.

        Raises:
            JiraClientError: If Jira is not configured or the fetch fails
        """
        credentials, instance_url = self._resolve_jira()
        if credentials is None:
            self.config_required = True
            self.jira_error = JIRA_NOT_CONFIGURED
            raise jira_client.JiraClientError(JIRA_NOT_CONFIGURED)
        try:
            self._plan.jira_results = self._fetch(self._plan.project_name, credentials, instance_url)
            self.jira_error = ""
        except jira_client.JiraClientError as e:
            self.jira_error = e.message
            raise

    # ------------------------------------------------------------------
    # Modals and persistence
    # ------------------------------------------------------------------

    def open_modal(self, modal: Union[ModalFlag, str]) -> None:
        self.modals.add(ModalFlag(modal))

    def close_modal(self, modal: Union[ModalFlag, str]) -> None:
        self.modals.discard(ModalFlag(modal))

    def save_draft(self, name: Optional[str] = None) -> DraftPlan:
        """
        Save the plan-in-progress as a draft, optionally under another name.

        Raises:
            PlanValidationError: If the resulting name is blank
        """
        content = self.plan
        if name is not None:
            content.test_plan_name = name
        record = self.repository.save_draft(content)
        self.modals.discard(ModalFlag.SAVE)
        return record

    def publish(self, refresh_issues: bool = False) -> PublishedPlan:
        """
        Publish a snapshot of the plan-in-progress.

        Args:
            refresh_issues: Re-fetch Jira issues first so the snapshot is current

        Raises:
            PlanValidationError: If the plan name is blank
            JiraClientError: If refresh_issues is set and the fetch fails
        """
        if refresh_issues:
            self.refresh_issues()
        record = self.repository.publish(self.plan)
        self.modals.discard(ModalFlag.PUBLISH)
        return record

    def load_plan(self, record: PlanContent) -> None:
        """Replace the plan-in-progress with a saved plan and show it."""
        self.new_plan()
        self._plan = record.content()
        self._go(WizardStep.PLAN_VIEW)

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of the wizard state."""
        return {
            "id": self.id,
            "step": self.step.value,
            "modals": sorted(m.value for m in self.modals),
            "plan": self._plan.model_dump(mode="json", by_alias=True),
            "jira_error": self.jira_error,
            "jira_loading": self.jira_loading,
            "config_required": self.config_required,
            "test_approach_options": list(TEST_APPROACH_OPTIONS),
        }
