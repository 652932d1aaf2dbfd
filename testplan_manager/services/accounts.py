"""
Local login stub, registered users and integration configuration.

Login is a stub: any non-blank username/password pair is accepted and the
role comes from the registered-user list, except for the built-in admin
names. Roles are a UI affordance, not a security boundary.
"""
import logging
from typing import List, Optional, Union
from pydantic import ValidationError
from testplan_manager.constants import BUILTIN_ADMIN_USERNAMES, STORAGE_KEYS
from testplan_manager.models.account import (
    JiraConfig,
    RegisteredUser,
    SessionIdentity,
    TestMoConfig,
)
from testplan_manager.models.enums import UserRole
from testplan_manager.models.plan import utcnow
from testplan_manager.services.storage import KeyValueStore

logger = logging.getLogger(__name__)


class AccountValidationError(ValueError):
    """Raised when login, registration or configuration input is invalid."""
    pass


class AccountService:
    """Session identity, registered users and integration settings."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> SessionIdentity:
        """
        Start a session for username.

        Raises:
            AccountValidationError: If username or password is blank
        """
        if not (username or "").strip() or not (password or "").strip():
            raise AccountValidationError("Please enter both username and password")

        username = username.strip()
        registered = self.find_user(username)
        if username in BUILTIN_ADMIN_USERNAMES:
            role = UserRole.ADMIN
        else:
            role = registered.role if registered else UserRole.USER
        identity = SessionIdentity(username=username, role=role, login_time=utcnow())
        self.store.set(STORAGE_KEYS["SESSION"], identity.model_dump(mode="json", by_alias=True))
        logger.info(f"User {username} logged in (role={role.value})")
        return identity

    def logout(self) -> None:
        self.store.remove(STORAGE_KEYS["SESSION"])

    def current_session(self) -> Optional[SessionIdentity]:
        raw = self.store.get(STORAGE_KEYS["SESSION"])
        if not raw:
            return None
        try:
            return SessionIdentity.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Stored session is unreadable: {e}")
            return None

    # ------------------------------------------------------------------
    # Registered users
    # ------------------------------------------------------------------

    def list_users(self) -> List[RegisteredUser]:
        users = []
        for item in self.store.get(STORAGE_KEYS["REGISTERED_USERS"], []) or []:
            try:
                users.append(RegisteredUser.model_validate(item))
            except ValidationError as e:
                logger.error(f"Skipping unreadable registered user: {e}")
        return users

    def find_user(self, username: str) -> Optional[RegisteredUser]:
        return next((u for u in self.list_users() if u.username == username), None)

    def register_user(
        self,
        username: str,
        email: str,
        password: str,
        role: Union[UserRole, str] = UserRole.USER
    ) -> RegisteredUser:
        """
        Register a user. The password is validated but not stored.

        Raises:
            AccountValidationError: If a field is blank, the role is unknown
                or the username is taken
        """
        if not (username or "").strip() or not (email or "").strip() or not (password or "").strip():
            raise AccountValidationError("All fields are required")
        try:
            role = UserRole(role)
        except ValueError:
            raise AccountValidationError(f"Unknown role: {role}")

        users = self.list_users()
        if any(u.username == username for u in users):
            raise AccountValidationError("Username already exists")

        user = RegisteredUser(username=username, email=email, role=role, created_at=utcnow())
        users.append(user)
        self.store.set(
            STORAGE_KEYS["REGISTERED_USERS"],
            [u.model_dump(mode="json", by_alias=True) for u in users]
        )
        logger.info(f"User {username} registered successfully (role={role.value})")
        return user

    # ------------------------------------------------------------------
    # Integration settings
    # ------------------------------------------------------------------

    def get_jira_config(self) -> JiraConfig:
        raw = self.store.get(STORAGE_KEYS["JIRA_CONFIG"])
        if not raw:
            return JiraConfig()
        try:
            return JiraConfig.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Stored JIRA config is unreadable: {e}")
            return JiraConfig()

    def save_jira_config(self, instance_url: str, email: str, api_token: str) -> JiraConfig:
        """
        Save Jira settings.

        Raises:
            AccountValidationError: If a field is blank or the URL is not an Atlassian Cloud URL
        """
        instance_url = (instance_url or "").strip()
        email = (email or "").strip()
        api_token = (api_token or "").strip()

        if not instance_url or not email or not api_token:
            raise AccountValidationError("All JIRA configuration fields are required")
        if "atlassian.net" not in instance_url:
            raise AccountValidationError("Invalid JIRA instance URL")

        config = JiraConfig(
            instance_url=instance_url,
            email=email,
            api_token=api_token,
            saved_at=utcnow(),
        )
        self.store.set(STORAGE_KEYS["JIRA_CONFIG"], config.model_dump(mode="json", by_alias=True))
        logger.info("JIRA configuration saved")
        return config

    def get_testmo_config(self) -> TestMoConfig:
        raw = self.store.get(STORAGE_KEYS["TESTMO_CONFIG"])
        if not raw:
            return TestMoConfig()
        try:
            return TestMoConfig.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Stored TestMo config is unreadable: {e}")
            return TestMoConfig()

    def save_testmo_config(self, base_url: str, api_key: str, project_id: str) -> TestMoConfig:
        """
        Save TestMo settings.

        Raises:
            AccountValidationError: If a field is blank
        """
        base_url = (base_url or "").strip()
        api_key = (api_key or "").strip()
        project_id = str(project_id or "").strip()

        if not base_url or not api_key or not project_id:
            raise AccountValidationError("All TestMo configuration fields are required")

        config = TestMoConfig(base_url=base_url, api_key=api_key, project_id=project_id)
        self.store.set(STORAGE_KEYS["TESTMO_CONFIG"], config.model_dump(mode="json", by_alias=True))
        logger.info("TestMo configuration saved")
        return config
