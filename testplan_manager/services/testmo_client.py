"""
TestMo client for pass-through GET requests and project test-case listing.
"""
import logging
from typing import Any, Dict, List, Optional
import requests
from testplan_manager.config import settings
from testplan_manager.constants import TESTMO_CASES_ENDPOINT
from testplan_manager.models.test_case import TestCase

logger = logging.getLogger(__name__)


class TestMoClientError(Exception):
    """Raised when TestMo API calls fail or TestMo is not configured."""

    __test__ = False  # not a pytest test class

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TestMoClient:
    """Bearer-authenticated TestMo API client."""

    __test__ = False  # not a pytest test class

    def __init__(self, base_url: Optional[str], api_key: Optional[str], timeout: Optional[int] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout or settings.request_timeout

        if not self.base_url or not self.api_key:
            raise TestMoClientError("Missing TestMo configuration.")

    def get(self, endpoint: str, query: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET base_url + endpoint and return the upstream JSON verbatim.

        Args:
            endpoint: API path (e.g., "/api/v1/projects/1/cases")
            query: Optional URL parameters

        Raises:
            TestMoClientError: On transport failure or non-2xx response
        """
        if not endpoint:
            raise TestMoClientError("Missing TestMo configuration.")

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        params = {k: _query_value(v) for k, v in (query or {}).items()}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TestMoClientError(f"TestMo request failed: {str(e)}")

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            message = "TestMo request failed."
            if isinstance(data, dict) and data.get("error"):
                message = str(data["error"])
            raise TestMoClientError(message, status_code=response.status_code)

        if data is None:
            raise TestMoClientError("TestMo returned invalid JSON", status_code=502)
        return data

    def fetch_cases(self, project_id: str) -> List[TestCase]:
        """
        Fetch all test cases of a project.

        The response may be {"cases": [...]}, {"data": [...]} or a bare list;
        any other shape yields an empty list.
        """
        data = self.get(TESTMO_CASES_ENDPOINT.format(project_id=project_id))
        return parse_cases(data)


def parse_cases(data: Any) -> List[TestCase]:
    """Extract test cases from a TestMo list response."""
    if isinstance(data, dict):
        cases = data.get("cases") or data.get("data") or []
    else:
        cases = data
    if not isinstance(cases, list):
        return []
    return [TestCase.model_validate(c) for c in cases if isinstance(c, dict)]


def _query_value(value: Any) -> str:
    # JSON booleans go out lowercase, as the upstream API spells them
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
