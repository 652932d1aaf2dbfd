"""
Tests for the TestMo client and test case parsing.
"""
import pytest
import requests
from unittest.mock import Mock, patch
from testplan_manager.services.testmo_client import TestMoClient, TestMoClientError, parse_cases


def _response(data, status_code=200):
    response = Mock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.json.return_value = data
    return response


def test_missing_configuration_raises():
    with pytest.raises(TestMoClientError, match="Missing TestMo configuration."):
        TestMoClient("", "key")


@patch("testplan_manager.services.testmo_client.requests.get")
def test_get_forwards_bearer_request(mock_get):
    mock_get.return_value = _response({"data": []})

    data = TestMoClient("https://acme.testmo.net/", "key-1").get("/api/v1/projects/3/cases", {"page": 2})

    assert data == {"data": []}
    args, kwargs = mock_get.call_args
    assert args[0] == "https://acme.testmo.net/api/v1/projects/3/cases"
    assert kwargs["headers"]["Authorization"] == "Bearer key-1"
    assert kwargs["params"] == {"page": "2"}


@patch("testplan_manager.services.testmo_client.requests.get")
def test_get_error_uses_upstream_message(mock_get):
    mock_get.return_value = _response({"error": "Invalid token"}, status_code=401)

    with pytest.raises(TestMoClientError) as exc_info:
        TestMoClient("https://acme.testmo.net", "bad").get("/api/v1/projects")

    assert exc_info.value.message == "Invalid token"
    assert exc_info.value.status_code == 401


@patch("testplan_manager.services.testmo_client.requests.get")
def test_get_error_without_body_uses_generic_message(mock_get):
    response = _response(None, status_code=503)
    response.json.side_effect = ValueError("no json")
    mock_get.return_value = response

    with pytest.raises(TestMoClientError) as exc_info:
        TestMoClient("https://acme.testmo.net", "key").get("/api/v1/projects")

    assert exc_info.value.message == "TestMo request failed."
    assert exc_info.value.status_code == 503


@patch("testplan_manager.services.testmo_client.requests.get")
def test_network_failure_has_no_status(mock_get):
    mock_get.side_effect = requests.exceptions.Timeout("slow")

    with pytest.raises(TestMoClientError) as exc_info:
        TestMoClient("https://acme.testmo.net", "key").get("/api/v1/projects")

    assert exc_info.value.status_code is None


@patch("testplan_manager.services.testmo_client.requests.get")
def test_fetch_cases_uses_project_endpoint(mock_get):
    mock_get.return_value = _response({"cases": [{"id": 1, "title": "Login"}]})

    cases = TestMoClient("https://acme.testmo.net", "key").fetch_cases("7")

    assert [c.title for c in cases] == ["Login"]
    assert mock_get.call_args.args[0] == "https://acme.testmo.net/api/v1/projects/7/cases"


def test_parse_cases_accepts_known_shapes():
    assert [c.id for c in parse_cases({"cases": [{"id": 1}]})] == [1]
    assert [c.id for c in parse_cases({"data": [{"id": "C2"}]})] == ["C2"]
    assert [c.id for c in parse_cases([{"id": 3}, "junk"])] == [3]
    assert parse_cases({"result": "nothing"}) == []
    assert parse_cases(None) == []


def test_test_case_keeps_extra_fields_and_flattens_structures():
    [case] = parse_cases([{
        "id": 5,
        "custom_issues": ["PROJ-1", "PROJ-2"],
        "custom_can_be_automated": "Yes",
        "folder_id": 12,
    }])

    assert case.custom_issues == '["PROJ-1", "PROJ-2"]'
    assert case.automation_status == "Yes"
    assert case.model_extra["folder_id"] == 12
