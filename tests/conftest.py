"""
Shared fixtures: an in-memory store, services built on it, and a FastAPI
test client wired to the same store.
"""
import pytest
from fastapi.testclient import TestClient
from testplan_manager.config import settings
from testplan_manager.models.issue import Issue
from testplan_manager.models.plan import PlanContent
from testplan_manager.services.accounts import AccountService
from testplan_manager.services.plan_repository import TestPlanRepository
from testplan_manager.services.storage import KeyValueStore, get_store


@pytest.fixture(autouse=True)
def no_env_jira(monkeypatch):
    """Keep Jira defaults from the developer's environment out of tests."""
    monkeypatch.setattr(settings, "jira_instance_url", None)
    monkeypatch.setattr(settings, "jira_email", None)
    monkeypatch.setattr(settings, "jira_api_token", None)


@pytest.fixture
def store():
    """Fresh in-memory SQLite store."""
    kv = KeyValueStore("sqlite://")
    yield kv
    kv.close()


@pytest.fixture
def repository(store):
    return TestPlanRepository(store)


@pytest.fixture
def accounts(store):
    return AccountService(store)


@pytest.fixture
def client(store):
    """Test client whose routes all share the in-memory store."""
    from testplan_manager.main import app
    from testplan_manager.api.wizard import reset_wizards

    app.dependency_overrides[get_store] = lambda: store
    reset_wizards()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        reset_wizards()


@pytest.fixture
def admin_client(client):
    response = client.post("/api/v1/login", json={"username": "admin", "password": "secret"})
    assert response.status_code == 200
    return client


def make_issue(key, issue_type, summary="", status="To Do", parent_key=None, assignee=None, priority=None):
    return Issue(
        key=key,
        summary=summary or f"{key} summary",
        status=status,
        issue_type=issue_type,
        parent_key=parent_key,
        assignee=assignee,
        priority=priority,
    )


@pytest.fixture
def sample_issues():
    """Two epics, three stories (one orphan) in Jira fetch order."""
    return [
        make_issue("PROJ-1", "Epic", "Checkout", status="In Progress"),
        make_issue("PROJ-2", "Epic", "Search"),
        make_issue("PROJ-10", "Story", "Pay by card", parent_key="PROJ-1", assignee="Ana", priority="High"),
        make_issue("PROJ-11", "Story", "Apply coupon", status="Done", parent_key="PROJ-1"),
        make_issue("PROJ-20", "Story", "Orphaned", parent_key="PROJ-99"),
    ]


@pytest.fixture
def sample_plan(sample_issues):
    return PlanContent(
        test_plan_name="Release 1.0",
        introduction="Smoke tests",
        project_disco="Payments team owns checkout",
        project_name="PROJ",
        test_approach=[{"name": "UAT", "details": "Business sign-off"}, {"name": "Feature Testing"}],
        epics=["Checkout", "Search"],
        jira_results=sample_issues,
    )
