"""
Version history for published test plans.

Published plans are append-only; the versions of a plan are all published
rows that share its name.
"""
from typing import List
from testplan_manager.models.plan import PublishedPlan


def published_versions(plans: List[PublishedPlan], plan_name: str) -> List[PublishedPlan]:
    """
    Get every published version of a plan, oldest first.

    Args:
        plans: All published plans
        plan_name: Plan name to match exactly

    Returns:
        Matching plans ordered by published_at
    """
    matching = [p for p in plans if p.test_plan_name == plan_name]
    return sorted(matching, key=lambda p: p.published_at)


def diff_summary(current: PublishedPlan, other: PublishedPlan) -> str:
    """
    Summarize which sections differ between two versions of a plan.

    Text sections are compared by value; list sections by length.

    Returns:
        "Changed: <section>, ..." or "No changes"
    """
    changes = []
    if current.introduction != other.introduction:
        changes.append("Introduction")
    if current.project_name != other.project_name:
        changes.append("Project Name")
    if current.project_disco != other.project_disco:
        changes.append("Project Discovery")
    if len(current.test_approach) != len(other.test_approach):
        changes.append("Test Approach")
    if len(current.epics) != len(other.epics):
        changes.append("Epics")
    if len(current.jira_results) != len(other.jira_results):
        changes.append("JIRA Issues")
    return f"Changed: {', '.join(changes)}" if changes else "No changes"
