"""
Pass-through proxy endpoints for Jira search and the TestMo API.

Both return the upstream JSON verbatim on success and {"error": ...} with a
non-2xx status otherwise.
"""
import logging
from typing import Any, Dict, Optional, Union
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from testplan_manager.config import settings
from testplan_manager.services.jira_client import JiraClient, JiraClientError
from testplan_manager.services.testmo_client import TestMoClient, TestMoClientError

logger = logging.getLogger(__name__)

router = APIRouter()


class JiraProxyRequest(BaseModel):
    """Jira search request. Omitted credentials fall back to server settings."""

    query: Optional[str] = Field(None, description="JQL query")
    jql: Optional[str] = Field(None, description="JQL query (alternate name)")
    username: Optional[str] = None
    password: Optional[str] = None
    instance_url: Optional[str] = Field(None, alias="instanceUrl")

    class Config:
        populate_by_name = True


class TestMoProxyRequest(BaseModel):
    """TestMo GET request to forward."""

    __test__ = False  # not a pytest test class

    base_url: Optional[str] = Field(None, alias="baseUrl")
    api_key: Optional[str] = Field(None, alias="apiKey")
    endpoint: Optional[str] = None
    query: Optional[Dict[str, Union[str, int, float, bool]]] = None

    class Config:
        populate_by_name = True


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/api/jira")
def jira_proxy(request: JiraProxyRequest) -> Any:
    """Run a JQL search against Jira and return its native response."""
    jql = request.query or request.jql
    if not jql:
        return _error("JQL query is required", 400)

    try:
        client = JiraClient(
            base_url=request.instance_url or settings.jira_instance_url,
            email=request.username or settings.jira_email,
            api_token=request.password or settings.jira_api_token,
        )
    except JiraClientError as e:
        return _error(e.message, 500)

    try:
        return client.search_issues(jql)
    except JiraClientError as e:
        logger.error(f"JIRA query error: {e.message}")
        return _error(e.message if e.status_code else "Failed to query JIRA", e.status_code or 500)


@router.post("/api/testmo")
def testmo_proxy(request: TestMoProxyRequest) -> Any:
    """Forward a bearer-authenticated GET to TestMo and return its response."""
    if not request.base_url or not request.api_key or not request.endpoint:
        return _error("Missing TestMo configuration.", 400)

    try:
        client = TestMoClient(request.base_url, request.api_key)
        return client.get(request.endpoint, request.query)
    except TestMoClientError as e:
        logger.error(f"TestMo request error: {e.message}")
        return _error(e.message if e.status_code else "TestMo request failed.", e.status_code or 500)
