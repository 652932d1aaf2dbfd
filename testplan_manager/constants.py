"""
Shared constants: test approach options, storage keys and export MIME types.
"""

TEST_APPROACH_OPTIONS = (
    "End to End Testing",
    "Feature Testing",
    "UAT",
)

# Keys of the persisted state layout
STORAGE_KEYS = {
    "SAVED_TEST_PLANS": "savedTestPlans",
    "PUBLISHED_TEST_PLANS": "publishedTestPlans",
    "JIRA_CONFIG": "jiraConfig",
    "TESTMO_CONFIG": "testmoConfig",
    "REGISTERED_USERS": "registeredUsers",
    "SESSION": "session",
}

JIRA_SEARCH_FIELDS = "key,summary,status,assignee,priority,issuetype,parent,customfield_10008"
JIRA_MAX_RESULTS = 100

TESTMO_CASES_ENDPOINT = "/api/v1/projects/{project_id}/cases"

EXPORT_MIME_TYPES = {
    "markdown": "text/markdown",
    "html": "text/html",
    "csv": "text/csv",
}

EXPORT_EXTENSIONS = {
    "markdown": "md",
    "html": "html",
}

HEALTH_KEYWORD = "tech debt"

# Usernames that always get the admin role at login (local stub)
BUILTIN_ADMIN_USERNAMES = ("admin", "demo")

# Open wizards kept in memory; the least recently used one is dropped beyond this
MAX_OPEN_WIZARDS = 200
