"""
Status and type enums for the application.
"""
from enum import Enum


class IssueType(str, Enum):
    """Jira issue types the plan aggregation cares about."""
    
    EPIC = "Epic"
    STORY = "Story"
    BUG = "Bug"


class PlanCollection(str, Enum):
    """Persisted plan collections."""
    
    DRAFTS = "drafts"
    PUBLISHED = "published"


class ExportFormat(str, Enum):
    """Document export formats."""
    
    MARKDOWN = "markdown"
    HTML = "html"


class WizardStep(str, Enum):
    """Current data-entry step of the plan wizard. Exactly one is active."""
    
    NAME_ENTRY = "name_entry"
    TITLE_DISPLAY = "title_display"
    INTRODUCTION = "introduction"
    PROJECT_DISCOVERY = "project_discovery"
    PROJECT_NAME = "project_name"
    TEST_APPROACH = "test_approach"
    EPIC_ENTRY = "epic_entry"
    PLAN_VIEW = "plan_view"


class ModalFlag(str, Enum):
    """Overlays that may be open on top of any wizard step."""
    
    SAVE = "save"
    LOAD = "load"
    PUBLISH = "publish"
    UPDATE_SECTION = "update_section"


class UserRole(str, Enum):
    """Client-side roles (UI affordance only)."""
    
    USER = "user"
    ADMIN = "admin"
