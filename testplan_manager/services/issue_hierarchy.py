"""
Epic → story grouping over a flat list of tracker issues.

Shared by the document exporter and the plan view so both present the same
hierarchy.
"""
from typing import Dict, List
from pydantic import BaseModel, Field
from testplan_manager.models.issue import Issue


class EpicGroup(BaseModel):
    """An epic and the stories whose parent key points at it."""

    epic: Issue
    stories: List[Issue] = Field(default_factory=list)


def group_stories_by_epic(issues: List[Issue]) -> List[EpicGroup]:
    """
    Group stories under their parent epic.

    Epics keep the order of their first appearance; a repeated epic key is
    grouped once. Stories keep input order. Stories whose parent is not an
    epic in the list are left out.

    Args:
        issues: Flat list of epics and stories

    Returns:
        List of EpicGroup, one per distinct epic key
    """
    groups: Dict[str, EpicGroup] = {}
    for issue in issues:
        if issue.is_epic and issue.key not in groups:
            groups[issue.key] = EpicGroup(epic=issue)

    for issue in issues:
        if issue.is_story and issue.parent_key in groups:
            groups[issue.parent_key].stories.append(issue)

    return list(groups.values())
