"""
Tests for the login stub, registered users and integration settings.
"""
import pytest
from testplan_manager.models.enums import UserRole
from testplan_manager.services.accounts import AccountValidationError


def test_login_requires_username_and_password(accounts):
    with pytest.raises(AccountValidationError):
        accounts.login("alice", "")
    with pytest.raises(AccountValidationError):
        accounts.login("  ", "pw")

    assert accounts.current_session() is None


def test_login_defaults_to_user_role_and_persists_session(accounts, store):
    identity = accounts.login("alice", "pw")

    assert identity.role == UserRole.USER
    assert accounts.current_session().username == "alice"
    raw = store.get("session")
    assert raw["username"] == "alice"
    assert "loginTime" in raw
    assert "password" not in raw


@pytest.mark.parametrize("username", ["admin", "demo"])
def test_builtin_admin_names_log_in_as_admin(accounts, username):
    assert accounts.login(username, "pw").is_admin


def test_registered_role_is_used_at_login(accounts):
    accounts.register_user("lead", "lead@acme.com", "pw", "admin")

    assert accounts.login("lead", "pw").role == UserRole.ADMIN


def test_logout_clears_session(accounts):
    accounts.login("alice", "pw")
    accounts.logout()

    assert accounts.current_session() is None


def test_register_user_validation(accounts):
    accounts.register_user("bob", "bob@acme.com", "pw")

    with pytest.raises(AccountValidationError, match="All fields are required"):
        accounts.register_user("carol", "", "pw")
    with pytest.raises(AccountValidationError, match="Unknown role"):
        accounts.register_user("carol", "c@acme.com", "pw", "owner")
    with pytest.raises(AccountValidationError, match="Username already exists"):
        accounts.register_user("bob", "other@acme.com", "pw")

    assert [u.username for u in accounts.list_users()] == ["bob"]


def test_registered_users_never_store_passwords(accounts, store):
    accounts.register_user("bob", "bob@acme.com", "hunter2")

    assert "hunter2" not in str(store.get("registeredUsers"))


def test_jira_config_round_trip_and_validation(accounts):
    assert accounts.get_jira_config().instance_url == ""

    with pytest.raises(AccountValidationError, match="required"):
        accounts.save_jira_config("https://acme.atlassian.net", "", "token")
    with pytest.raises(AccountValidationError, match="Invalid JIRA instance URL"):
        accounts.save_jira_config("https://jira.acme.com", "qa@acme.com", "token")

    accounts.save_jira_config(" https://acme.atlassian.net ", "qa@acme.com", "token")
    config = accounts.get_jira_config()

    assert config.instance_url == "https://acme.atlassian.net"
    assert config.credentials().is_complete
    assert config.saved_at is not None


def test_testmo_config_round_trip(accounts):
    assert not accounts.get_testmo_config().is_complete

    with pytest.raises(AccountValidationError):
        accounts.save_testmo_config("https://acme.testmo.net", "key", "")

    accounts.save_testmo_config("https://acme.testmo.net", "key", 3)

    config = accounts.get_testmo_config()
    assert config.is_complete
    assert config.project_id == "3"
