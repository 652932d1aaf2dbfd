"""
Jira client for searching issues and fetching a project's epic/story hierarchy.

This module provides read-only access to Jira. It does NOT write back to Jira.
"""
import logging
from typing import Any, Dict, List, Optional
import requests
from requests.auth import HTTPBasicAuth
from testplan_manager.config import settings
from testplan_manager.constants import JIRA_MAX_RESULTS, JIRA_SEARCH_FIELDS
from testplan_manager.models.account import JiraCredentials
from testplan_manager.models.issue import Issue

logger = logging.getLogger(__name__)


class JiraClientError(Exception):
    """Raised when Jira API calls fail or Jira is not configured."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def epic_jql(project_name: str) -> str:
    """JQL selecting every epic of a project."""
    escaped = project_name.replace("\\", "\\\\").replace('"', '\\"')
    return f'project = "{escaped}" AND issuetype = Epic'


def story_jql(epic_key: str) -> str:
    """JQL selecting the stories under an epic, newest first."""
    return f"issuetype = Story AND parent = {epic_key} ORDER BY created DESC"


class JiraClient:
    """Client for Jira issue search."""

    def __init__(
        self,
        base_url: Optional[str],
        email: Optional[str],
        api_token: Optional[str],
        timeout: Optional[int] = None
    ):
        """
        Initialize Jira client.

        Args:
            base_url: Jira instance URL (e.g., "https://yourcompany.atlassian.net")
            email: Jira user email for authentication
            api_token: Jira API token for authentication
            timeout: Request timeout in seconds (default: settings.request_timeout)

        Raises:
            JiraClientError: If any credential is missing
        """
        self.jira_url = (base_url or "").rstrip("/")
        self.email = email or ""
        self.api_token = api_token or ""
        self.timeout = timeout or settings.request_timeout

        if not self.jira_url or not self.email or not self.api_token:
            raise JiraClientError("JIRA credentials not configured")

    def search_issues(self, jql: str) -> Dict[str, Any]:
        """
        Run a JQL search and return Jira's native response.

        Args:
            jql: JQL query string

        Returns:
            Search response JSON (with "issues" list)

        Raises:
            JiraClientError: On transport failure or non-2xx response
        """
        url = f"{self.jira_url}/rest/api/3/search/jql"
        params = {
            "jql": jql,
            "maxResults": str(JIRA_MAX_RESULTS),
            "fields": JIRA_SEARCH_FIELDS,
        }
        headers = {"Accept": "application/json", "Content-Type": "application/json"}

        try:
            response = requests.get(
                url,
                params=params,
                auth=HTTPBasicAuth(self.email, self.api_token),
                headers=headers,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            raise JiraClientError(
                f"Jira API request timed out after {self.timeout} seconds"
            )
        except requests.exceptions.RequestException as e:
            raise JiraClientError(f"Jira API request failed: {str(e)}")

        if not response.ok:
            raise JiraClientError(
                f"JIRA API error: {response.text}",
                status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError:
            raise JiraClientError("JIRA API returned invalid JSON", status_code=502)

    def search(self, jql: str) -> List[Issue]:
        """Run a JQL search and parse the issues."""
        data = self.search_issues(jql)
        return [Issue.from_jira(raw) for raw in data.get("issues") or []]

    def fetch_project_issues(self, project_name: str) -> List[Issue]:
        """
        Fetch all epics of a project followed by the stories under each epic.

        A failure while fetching one epic's stories is logged and skipped, so
        that epic still appears with zero stories. A failure fetching the epic
        list aborts the whole operation.

        Args:
            project_name: Jira project name or key

        Returns:
            Flat list: epics first, then stories (hierarchy via parent_key)

        Raises:
            JiraClientError: If the epic query fails
        """
        epics = self.search(epic_jql(project_name))
        stories: List[Issue] = []

        for epic in epics:
            try:
                stories.extend(self.search(story_jql(epic.key)))
            except JiraClientError as e:
                logger.warning(f"Failed to fetch stories for epic {epic.key}: {e.message}")

        logger.info(
            "Fetched %d epics and %d stories for project %s",
            len(epics), len(stories), project_name
        )
        return epics + stories


def fetch_project_issues(
    project_name: str,
    credentials: JiraCredentials,
    instance_url: Optional[str] = None
) -> List[Issue]:
    """
    Fetch a project's epics and stories with the given credentials.

    Args:
        project_name: Jira project name or key
        credentials: Email and API token
        instance_url: Jira base URL; falls back to settings.jira_instance_url

    Returns:
        Flat list of epics followed by stories

    Raises:
        JiraClientError: If not configured or the epic query fails
    """
    client = JiraClient(
        base_url=instance_url or settings.jira_instance_url,
        email=credentials.email,
        api_token=credentials.api_token,
    )
    return client.fetch_project_issues(project_name)
