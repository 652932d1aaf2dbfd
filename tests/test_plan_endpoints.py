"""
Tests for draft, published, export and health report endpoints.
"""
from unittest.mock import Mock, patch
from testplan_manager.services.jira_client import JiraClientError


def _plan_body(name="Release 1.0", **fields):
    body = {"testPlanName": name, "introduction": "Smoke tests", "projectName": "PROJ"}
    body.update(fields)
    return body


def _issue_body(key, issue_type, parent_key=None, status="To Do", summary=None):
    return {
        "key": key,
        "summary": summary or f"{key} summary",
        "status": status,
        "issueType": issue_type,
        "parentKey": parent_key,
    }


def test_draft_crud(client):
    created = client.post("/api/v1/plans/drafts", json=_plan_body())
    assert created.status_code == 201
    draft = created.json()
    assert draft["testPlanName"] == "Release 1.0"

    updated = client.post("/api/v1/plans/drafts", json=_plan_body(introduction="Full regression")).json()
    assert updated["id"] == draft["id"]
    assert updated["createdAt"] == draft["createdAt"]

    listing = client.get("/api/v1/plans/drafts").json()
    assert len(listing) == 1
    assert listing[0]["introduction"] == "Full regression"

    assert client.get(f"/api/v1/plans/drafts/{draft['id']}").status_code == 200
    assert client.delete(f"/api/v1/plans/drafts/{draft['id']}").status_code == 204
    assert client.get(f"/api/v1/plans/drafts/{draft['id']}").status_code == 404
    assert client.delete(f"/api/v1/plans/drafts/{draft['id']}").status_code == 404


def test_draft_with_blank_name_is_400(client):
    response = client.post("/api/v1/plans/drafts", json=_plan_body(name=" "))

    assert response.status_code == 400
    assert response.json()["detail"] == "Test plan name is required"


def test_publish_requires_login_and_admin(client):
    assert client.post("/api/v1/plans/published", json=_plan_body()).status_code == 401

    client.post("/api/v1/login", json={"username": "alice", "password": "pw"})
    assert client.post("/api/v1/plans/published", json=_plan_body()).status_code == 403


def test_publish_twice_and_versions(admin_client):
    first = admin_client.post("/api/v1/plans/published", json=_plan_body()).json()
    second = admin_client.post(
        "/api/v1/plans/published",
        json=_plan_body(introduction="Full regression", epics=["Checkout"])
    ).json()

    assert first["id"] != second["id"]
    assert len(admin_client.get("/api/v1/plans/published").json()) == 2

    versions = admin_client.get(f"/api/v1/plans/published/{second['id']}/versions").json()
    assert [v["version"] for v in versions] == [1, 2]
    assert [v["plan"]["id"] for v in versions] == [first["id"], second["id"]]
    assert versions[0]["changes"] == "Changed: Introduction, Epics"
    assert versions[1]["is_current"] is True
    assert versions[1]["changes"] == "No changes"


def test_published_view_groups_issues_and_builds_browse_url(admin_client):
    admin_client.put("/api/v1/admin/jira-config", json={
        "instanceUrl": "https://acme.atlassian.net/",
        "email": "qa@acme.com",
        "apiToken": "token",
    })
    body = _plan_body(jiraResults=[
        _issue_body("PROJ-1", "Epic"),
        _issue_body("PROJ-10", "Story", parent_key="PROJ-1"),
    ])
    plan_id = admin_client.post("/api/v1/plans/published", json=body).json()["id"]

    view = admin_client.get(f"/api/v1/plans/published/{plan_id}").json()

    assert view["browse_url"] == "https://acme.atlassian.net/browse/"
    [group] = view["issue_groups"]
    assert group["epic"]["key"] == "PROJ-1"
    assert [s["key"] for s in group["stories"]] == ["PROJ-10"]


def test_unknown_published_plan_is_404(client):
    assert client.get("/api/v1/plans/published/nope").status_code == 404
    assert client.get("/api/v1/plans/published/nope/versions").status_code == 404


def test_export_markdown_and_html(client):
    draft = client.post("/api/v1/plans/drafts", json=_plan_body()).json()

    md = client.get(f"/api/v1/plans/drafts/{draft['id']}/export")
    assert md.status_code == 200
    assert md.headers["content-type"].startswith("text/markdown")
    assert "Release_1.0_" in md.headers["content-disposition"]
    assert md.headers["content-disposition"].endswith('.md"')
    assert md.text.startswith("# Test Plan: Release 1.0")

    html = client.get(f"/api/v1/plans/drafts/{draft['id']}/export", params={"format": "html"})
    assert html.headers["content-type"].startswith("text/html")
    assert "<h2>Introduction</h2>" in html.text

    assert client.get(f"/api/v1/plans/drafts/{draft['id']}/export", params={"format": "pdf"}).status_code == 422
    assert client.get("/api/v1/plans/published/nope/export").status_code == 404


def test_issue_csv_with_filter(admin_client):
    body = _plan_body(jiraResults=[
        _issue_body("PROJ-1", "Epic", summary="Checkout"),
        _issue_body("PROJ-2", "Bug", summary="Login bug"),
    ])
    plan_id = admin_client.post("/api/v1/plans/published", json=body).json()["id"]

    response = admin_client.get(f"/api/v1/plans/published/{plan_id}/issues.csv", params={"filter": "login"})

    assert response.headers["content-type"].startswith("text/csv")
    assert response.text == (
        '"Key","Summary","Type","Status","Priority"\n'
        '"PROJ-2","Login bug","Bug","To Do",""'
    )


def test_health_report_reports_unconfigured_integrations(admin_client):
    plan_id = admin_client.post("/api/v1/plans/published", json=_plan_body()).json()["id"]

    report = admin_client.get(f"/api/v1/plans/published/{plan_id}/health").json()

    assert report["jira_error"] == "JIRA is not configured for this project."
    assert report["testmo_error"] == "TestMo is not configured for this project."
    assert report["metrics"]["total_issues"] == 0
    assert report["metrics"]["release_readiness"] == 0


def test_health_report_is_admin_only(client):
    client.post("/api/v1/login", json={"username": "alice", "password": "pw"})

    assert client.get("/api/v1/plans/published/any/health").status_code == 403


@patch("testplan_manager.services.testmo_client.requests.get")
@patch("testplan_manager.services.jira_client.fetch_project_issues")
def test_health_report_with_live_data(mock_fetch, mock_testmo_get, admin_client, sample_issues):
    admin_client.put("/api/v1/admin/jira-config", json={
        "instanceUrl": "https://acme.atlassian.net",
        "email": "qa@acme.com",
        "apiToken": "token",
    })
    admin_client.put("/api/v1/admin/testmo-config", json={
        "baseUrl": "https://acme.testmo.net",
        "apiKey": "key",
        "projectId": "3",
    })
    plan_id = admin_client.post("/api/v1/plans/published", json=_plan_body()).json()["id"]
    mock_fetch.return_value = sample_issues
    testmo_response = Mock(ok=True, status_code=200)
    testmo_response.json.return_value = {"cases": [
        {"id": 1, "title": "Pay by card", "custom_automation_status": "Yes", "status": "Passed"},
        {"id": 2, "title": "Coupon", "status": "Failed"},
    ]}
    mock_testmo_get.return_value = testmo_response

    report = admin_client.get(
        f"/api/v1/plans/published/{plan_id}/health",
        params={"jira_filter": "coupon", "testmo_filter": "card"}
    ).json()

    assert mock_fetch.call_args.args[0] == "PROJ"
    assert report["jira_error"] == "" and report["testmo_error"] == ""
    assert report["metrics"]["total_issues"] == len(sample_issues)
    assert report["metrics"]["done_count"] == 1
    assert report["metrics"]["automation_count"] == 1
    assert report["metrics"]["passed_count"] == 1
    assert [i["key"] for i in report["issues"]] == ["PROJ-11"]
    assert [c["id"] for c in report["test_cases"]] == [1]
    assert mock_testmo_get.call_args.args[0] == "https://acme.testmo.net/api/v1/projects/3/cases"

    build_csv = admin_client.get(f"/api/v1/plans/published/{plan_id}/health/build_report.csv")
    assert build_csv.headers["content-disposition"] == 'attachment; filename="Release 1.0_build_report.csv"'
    assert len(build_csv.text.split("\n")) == 3


@patch("testplan_manager.services.jira_client.fetch_project_issues")
def test_health_report_jira_failure_is_panel_error(mock_fetch, admin_client):
    admin_client.put("/api/v1/admin/jira-config", json={
        "instanceUrl": "https://acme.atlassian.net",
        "email": "qa@acme.com",
        "apiToken": "token",
    })
    mock_fetch.side_effect = JiraClientError("JIRA API error: Forbidden", status_code=403)
    plan_id = admin_client.post("/api/v1/plans/published", json=_plan_body()).json()["id"]

    response = admin_client.get(f"/api/v1/plans/published/{plan_id}/health")

    assert response.status_code == 200
    assert response.json()["jira_error"] == "JIRA API error: Forbidden"

    jira_csv = admin_client.get(f"/api/v1/plans/published/{plan_id}/health/jira_report.csv")
    assert jira_csv.text == '"Key","Summary","Type","Status","Priority"'


def test_dashboard_lists_plans_for_session(client):
    assert client.get("/api/v1/dashboard").status_code == 401

    client.post("/api/v1/login", json={"username": "alice", "password": "pw"})
    client.post("/api/v1/plans/drafts", json=_plan_body())
    dashboard = client.get("/api/v1/dashboard").json()

    assert dashboard["username"] == "alice"
    assert [d["testPlanName"] for d in dashboard["drafts"]] == ["Release 1.0"]
    assert dashboard["published"] == []
