"""
Project health metrics derived from tracker issues and TestMo test cases.
"""
from typing import List
from pydantic import BaseModel, Field
from testplan_manager.constants import HEALTH_KEYWORD
from testplan_manager.models.enums import IssueType
from testplan_manager.models.issue import Issue
from testplan_manager.models.test_case import TestCase


class HealthMetrics(BaseModel):
    """Summary counts for the project health report."""

    total_issues: int = 0
    bug_count: int = 0
    done_count: int = 0
    release_readiness: int = Field(default=0, description="Done issues as a whole-number percentage")
    total_cases: int = 0
    automation_count: int = Field(default=0, description="Cases whose automation status is 'yes'")
    passed_count: int = Field(default=0, description="Cases whose execution status is 'passed'")
    keyword: str = HEALTH_KEYWORD
    keyword_count: int = Field(default=0, description="Issues whose summary contains the keyword")


def percent(part: int, total: int) -> int:
    """part/total as a percentage rounded half up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (part * 200 + total) // (2 * total)


def compute_health_metrics(
    issues: List[Issue],
    cases: List[TestCase],
    keyword: str = HEALTH_KEYWORD
) -> HealthMetrics:
    """
    Aggregate health metrics.

    Args:
        issues: Tracker issues (already filtered if needed)
        cases: TestMo cases (already filtered if needed)
        keyword: Substring counted in issue summaries (case-insensitive)

    Returns:
        HealthMetrics
    """
    total = len(issues)
    done = sum(1 for i in issues if i.status == "Done")
    needle = keyword.lower()

    return HealthMetrics(
        total_issues=total,
        bug_count=sum(1 for i in issues if i.issue_type == IssueType.BUG),
        done_count=done,
        release_readiness=percent(done, total),
        total_cases=len(cases),
        automation_count=sum(1 for c in cases if c.automation_status.lower() == "yes"),
        passed_count=sum(1 for c in cases if c.execution_status.lower() == "passed"),
        keyword=keyword,
        keyword_count=sum(1 for i in issues if needle and needle in i.summary.lower()),
    )


def filter_issues(issues: List[Issue], query: str) -> List[Issue]:
    """Case-insensitive substring filter over "key summary"; blank query keeps all."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(issues)
    return [i for i in issues if needle in f"{i.key} {i.summary}".lower()]


def filter_test_cases(cases: List[TestCase], query: str) -> List[TestCase]:
    """Case-insensitive substring filter over "id title linked-issues"; blank query keeps all."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(cases)
    return [
        c for c in cases
        if needle in f"{c.id or ''} {c.title or ''} {c.custom_issues or ''}".lower()
    ]
