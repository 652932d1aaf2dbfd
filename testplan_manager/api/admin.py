"""
Login stub, registered users and integration settings endpoints.
"""
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from testplan_manager.models.account import RegisteredUser, SessionIdentity
from testplan_manager.models.enums import UserRole
from testplan_manager.services.accounts import AccountService, AccountValidationError
from testplan_manager.api.deps import get_accounts, require_admin, require_session

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class RegisterUserRequest(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""
    role: UserRole = UserRole.USER


class JiraConfigRequest(BaseModel):
    instance_url: str = Field(default="", alias="instanceUrl")
    email: str = ""
    api_token: str = Field(default="", alias="apiToken")

    class Config:
        populate_by_name = True


class JiraConfigResponse(BaseModel):
    """Stored Jira settings with the token masked."""

    instance_url: str = Field(default="", alias="instanceUrl")
    email: str = ""
    has_api_token: bool = Field(default=False, alias="hasApiToken")
    saved_at: Optional[datetime] = Field(default=None, alias="savedAt")

    class Config:
        populate_by_name = True


class TestMoConfigRequest(BaseModel):
    __test__ = False  # not a pytest test class

    base_url: str = Field(default="", alias="baseUrl")
    api_key: str = Field(default="", alias="apiKey")
    project_id: str = Field(default="", alias="projectId")

    class Config:
        populate_by_name = True


class TestMoConfigResponse(BaseModel):
    """Stored TestMo settings with the key masked."""

    __test__ = False  # not a pytest test class

    base_url: str = Field(default="", alias="baseUrl")
    has_api_key: bool = Field(default=False, alias="hasApiKey")
    project_id: str = Field(default="", alias="projectId")

    class Config:
        populate_by_name = True


def _bad_request(e: AccountValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ----------------------------------------------------------------------
# Session
# ----------------------------------------------------------------------

@router.post("/login", response_model=SessionIdentity, response_model_by_alias=True)
def login(body: LoginRequest, accounts: AccountService = Depends(get_accounts)) -> SessionIdentity:
    """Start a session. Any non-blank credentials are accepted."""
    try:
        return accounts.login(body.username, body.password)
    except AccountValidationError as e:
        raise _bad_request(e)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(accounts: AccountService = Depends(get_accounts)) -> Response:
    accounts.logout()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/session", response_model=SessionIdentity, response_model_by_alias=True)
def current_session(identity: SessionIdentity = Depends(require_session)) -> SessionIdentity:
    return identity


# ----------------------------------------------------------------------
# Registered users (admins only)
# ----------------------------------------------------------------------

@router.get("/admin/users", response_model=List[RegisteredUser], response_model_by_alias=True)
def list_users(
    accounts: AccountService = Depends(get_accounts),
    identity: SessionIdentity = Depends(require_admin)
) -> List[RegisteredUser]:
    return accounts.list_users()


@router.post(
    "/admin/users",
    response_model=RegisteredUser,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED
)
def register_user(
    body: RegisterUserRequest,
    accounts: AccountService = Depends(get_accounts),
    identity: SessionIdentity = Depends(require_admin)
) -> RegisteredUser:
    try:
        return accounts.register_user(body.username, body.email, body.password, body.role)
    except AccountValidationError as e:
        raise _bad_request(e)


# ----------------------------------------------------------------------
# Integration settings
# ----------------------------------------------------------------------

@router.get("/admin/jira-config", response_model=JiraConfigResponse, response_model_by_alias=True)
def get_jira_config(accounts: AccountService = Depends(get_accounts)) -> JiraConfigResponse:
    config = accounts.get_jira_config()
    return JiraConfigResponse(
        instance_url=config.instance_url,
        email=config.email,
        has_api_token=bool(config.api_token),
        saved_at=config.saved_at,
    )


@router.put("/admin/jira-config", response_model=JiraConfigResponse, response_model_by_alias=True)
def save_jira_config(
    body: JiraConfigRequest,
    accounts: AccountService = Depends(get_accounts),
    identity: SessionIdentity = Depends(require_admin)
) -> JiraConfigResponse:
    """
    Save Jira settings.

    Raises:
        HTTPException: 400 if a field is blank or the URL is not an atlassian.net URL
    """
    try:
        config = accounts.save_jira_config(body.instance_url, body.email, body.api_token)
    except AccountValidationError as e:
        raise _bad_request(e)
    return JiraConfigResponse(
        instance_url=config.instance_url,
        email=config.email,
        has_api_token=True,
        saved_at=config.saved_at,
    )


@router.get("/admin/testmo-config", response_model=TestMoConfigResponse, response_model_by_alias=True)
def get_testmo_config(accounts: AccountService = Depends(get_accounts)) -> TestMoConfigResponse:
    config = accounts.get_testmo_config()
    return TestMoConfigResponse(
        base_url=config.base_url,
        has_api_key=bool(config.api_key),
        project_id=config.project_id,
    )


@router.put("/admin/testmo-config", response_model=TestMoConfigResponse, response_model_by_alias=True)
def save_testmo_config(
    body: TestMoConfigRequest,
    accounts: AccountService = Depends(get_accounts),
    identity: SessionIdentity = Depends(require_admin)
) -> TestMoConfigResponse:
    try:
        config = accounts.save_testmo_config(body.base_url, body.api_key, body.project_id)
    except AccountValidationError as e:
        raise _bad_request(e)
    return TestMoConfigResponse(base_url=config.base_url, has_api_key=True, project_id=config.project_id)
