"""
Export formatting for test plans: Markdown, HTML, CSV and download filenames.

The HTML export is the Markdown export passed through a minimal line-oriented
converter. It only needs to handle the constructs generate_markdown emits.
"""
import csv
import html
import io
import re
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence, Union
from testplan_manager.constants import EXPORT_EXTENSIONS
from testplan_manager.models.enums import ExportFormat
from testplan_manager.models.issue import Issue
from testplan_manager.models.plan import PlanContent, utcnow
from testplan_manager.models.test_case import TestCase
from testplan_manager.services.issue_hierarchy import group_stories_by_epic

_HEADING_RE = re.compile(r"^(#{1,3}) (.*\S.*)$")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")

ISSUE_CSV_HEADER = ["Key", "Summary", "Type", "Status", "Priority"]

TEST_CASE_CSV_HEADER = [
    "Case ID",
    "Priority",
    "Complexity",
    "Impact of Failure",
    "Likelihood of Failure",
    "Can be Automated",
    "Automation Status",
    "Status",
    "Release",
    "Issues",
]

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, Cantarell, sans-serif;
      line-height: 1.6;
      max-width: 900px;
      margin: 0 auto;
      padding: 20px;
      background-color: #f5f5f5;
      color: #333;
    }}
    h1, h2, h3 {{ color: #1e40af; margin-top: 20px; }}
    h1 {{ border-bottom: 3px solid #1e40af; padding-bottom: 10px; }}
    strong {{ color: #111; }}
    ul {{ background: #f9f9f9; padding-left: 30px; border-left: 4px solid #1e40af; margin: 10px 0; }}
    li {{ margin: 8px 0; }}
    p {{ margin: 10px 0; }}
  </style>
</head>
<body>
{body}
</body>
</html>"""


def format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def generate_markdown(plan: PlanContent, generated_at: Optional[datetime] = None) -> str:
    """
    Render a plan as a Markdown document.

    Sections appear only when they have content, in this order: Introduction,
    Project Discovery, Project, Epics, Test Approach, JIRA Integration Results.

    Args:
        plan: Plan content (a draft, published plan or plan-in-progress)
        generated_at: Timestamp for the "Generated" line (default: now)

    Returns:
        Markdown text
    """
    generated_at = generated_at or utcnow()
    content = f"# Test Plan: {plan.test_plan_name}\n\n"
    content += f"**Generated:** {format_timestamp(generated_at)}\n\n"

    if plan.introduction:
        content += f"## Introduction\n{plan.introduction}\n\n"

    if plan.project_disco:
        content += f"## Project Discovery\n{plan.project_disco}\n\n"

    if plan.project_name:
        content += f"## Project\n**Project Name:** {plan.project_name}\n\n"

    if plan.epics:
        epic_lines = "\n".join(f"- {epic}" for epic in plan.epics)
        content += f"## Epics\n{epic_lines}\n\n"

    if plan.test_approach:
        content += "## Test Approach\n"
        for section in plan.test_approach:
            content += f"### {section.name}\n"
            if section.details:
                content += f"{section.details}\n\n"
        content += "\n"

    if plan.jira_results:
        content += _jira_markdown(plan.jira_results)

    return content


def _jira_markdown(issues: List[Issue]) -> str:
    content = "## JIRA Integration Results\n\n"

    for group in group_stories_by_epic(issues):
        epic = group.epic
        content += f"### Epic: {epic.key} - {epic.summary}\n"
        content += f"**Status:** {epic.status}\n"

        if group.stories:
            content += "\n**User Stories:**\n"
            for story in group.stories:
                content += f"- **{story.key}**: {story.summary}\n"
                content += f"  - Status: {story.status}\n"
                if story.assignee:
                    content += f"  - Assignee: {story.assignee}\n"
                if story.priority:
                    content += f"  - Priority: {story.priority}\n"
        else:
            content += "\n**No user stories found for this epic.**\n"
        content += "\n"

    return content


def _inline(text: str) -> str:
    return _BOLD_RE.sub(r"<strong>\1</strong>", html.escape(text, quote=False))


def markdown_to_html(markdown: str) -> str:
    """
    Convert generate_markdown output to HTML in one pass over its lines.

    Headings (#, ##, ###) become h1-h3, **bold** becomes strong, lines whose
    stripped form starts with "- " become list items wrapped in one ul per
    consecutive run, and any other non-empty line becomes a paragraph.
    """
    out: List[str] = []
    in_list = False

    for line in markdown.split("\n"):
        stripped = line.strip()
        is_item = stripped.startswith("- ")

        if in_list and not is_item:
            out.append("</ul>")
            in_list = False

        if not stripped:
            out.append("")
            continue

        heading = _HEADING_RE.match(line)
        if heading:
            level = len(heading.group(1))
            out.append(f"<h{level}>{_inline(heading.group(2))}</h{level}>")
        elif is_item:
            if not in_list:
                out.append("<ul>")
                in_list = True
            out.append(f"<li>{_inline(stripped[2:])}</li>")
        else:
            out.append(f"<p>{_inline(stripped)}</p>")

    if in_list:
        out.append("</ul>")

    return "\n".join(out)


def generate_html(plan: PlanContent, generated_at: Optional[datetime] = None) -> str:
    """Render a plan as a standalone HTML document."""
    body = markdown_to_html(generate_markdown(plan, generated_at))
    return HTML_TEMPLATE.format(title=html.escape(plan.test_plan_name), body=body)


def render(plan: PlanContent, fmt: Union[ExportFormat, str], generated_at: Optional[datetime] = None) -> str:
    """Render a plan in the requested export format."""
    if ExportFormat(fmt) == ExportFormat.HTML:
        return generate_html(plan, generated_at)
    return generate_markdown(plan, generated_at)


def export_filename(
    plan_name: str,
    fmt: Union[ExportFormat, str],
    today: Optional[date] = None
) -> str:
    """
    Build the download filename for a plan export.

    Example:
        >>> export_filename("Release 1.0  plan", "markdown", date(2024, 5, 1))
        'Release_1.0_plan_2024-05-01.md'
    """
    today = today or utcnow().date()
    extension = EXPORT_EXTENSIONS[ExportFormat(fmt).value]
    safe_name = re.sub(r"\s+", "_", plan_name)
    return f"{safe_name}_{today.isoformat()}.{extension}"


def csv_filename(plan_name: str, kind: str) -> str:
    """Download filename for a CSV report, e.g. "<plan>_jira_report.csv"."""
    return f"{plan_name or 'project'}_{kind}.csv"


def _cell(value: Any) -> str:
    # Falsy values are blank cells; booleans render the way the upstream JSON spells them
    if value is True:
        return "true"
    return str(value) if value else ""


def _to_csv(rows: Iterable[Sequence[Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        writer.writerow([_cell(cell) for cell in row])
    csv_str = output.getvalue()
    output.close()
    # Rows are newline-separated; no terminator after the last one
    return csv_str[:-1] if csv_str.endswith("\n") else csv_str


def export_issues_csv(issues: List[Issue]) -> str:
    """
    Export tracker issues as CSV text.

    Every field is quoted with internal quotes doubled; the header row is
    Key, Summary, Type, Status, Priority.
    """
    rows: List[Sequence[Any]] = [ISSUE_CSV_HEADER]
    for issue in issues:
        rows.append([
            issue.key,
            issue.summary,
            issue.issue_type,
            issue.status,
            issue.priority or "",
        ])
    return _to_csv(rows)


def export_test_cases_csv(cases: List[TestCase]) -> str:
    """Export TestMo cases as CSV text (same quoting as export_issues_csv)."""
    rows: List[Sequence[Any]] = [TEST_CASE_CSV_HEADER]
    for case in cases:
        rows.append([
            case.id,
            case.priority or case.custom_priority,
            case.custom_complexity,
            case.custom_impact_of_failure,
            case.custom_likelihood_of_failure,
            case.custom_can_be_automated,
            case.custom_automation_status,
            case.status,
            case.custom_release,
            case.custom_issues,
        ])
    return _to_csv(rows)
