"""
Local account, session and integration configuration records.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from testplan_manager.models.enums import UserRole
from testplan_manager.models.plan import utcnow


class JiraCredentials(BaseModel):
    """Credentials used for Jira basic auth."""

    email: str = ""
    api_token: str = Field(default="", alias="apiToken")

    class Config:
        populate_by_name = True

    @property
    def is_complete(self) -> bool:
        return bool(self.email and self.api_token)


class JiraConfig(BaseModel):
    """Stored Jira integration settings."""

    instance_url: str = Field(default="", alias="instanceUrl")
    email: str = ""
    api_token: str = Field(default="", alias="apiToken")
    saved_at: Optional[datetime] = Field(default=None, alias="savedAt")

    class Config:
        populate_by_name = True

    def credentials(self) -> JiraCredentials:
        return JiraCredentials(email=self.email, api_token=self.api_token)


class TestMoConfig(BaseModel):
    """Stored TestMo integration settings."""

    __test__ = False  # not a pytest test class

    base_url: str = Field(default="", alias="baseUrl")
    api_key: str = Field(default="", alias="apiKey")
    project_id: str = Field(default="", alias="projectId")

    class Config:
        populate_by_name = True

    @property
    def is_complete(self) -> bool:
        return bool(self.base_url and self.api_key and self.project_id)


class RegisteredUser(BaseModel):
    """User registered by an admin. Passwords are never persisted."""

    username: str
    email: str
    role: UserRole = UserRole.USER
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    class Config:
        populate_by_name = True


class SessionIdentity(BaseModel):
    """Identity of the logged-in user for the current workspace."""

    username: str
    role: UserRole = UserRole.USER
    login_time: datetime = Field(default_factory=utcnow, alias="loginTime")

    class Config:
        populate_by_name = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
