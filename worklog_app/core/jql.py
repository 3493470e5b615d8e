"""JQL string builders.

Double quotes in user-supplied text are escaped before interpolation; no other
characters are touched. Date literals are always emitted quoted.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime


def escape_jql_string(value: str) -> str:
    return value.replace('"', '\\"')


def format_jql_date(value: date | str) -> str:
    """Normalize a ``date`` or ``YYYY-MM-DD`` string to an ISO date literal."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value).strip()).isoformat()
    except ValueError as exc:
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD") from exc


def _date_range_clause(start: date | str, end: date | str) -> str:
    return f'worklogDate >= "{format_jql_date(start)}" AND worklogDate <= "{format_jql_date(end)}"'


def build_task_search_jql(search_text: str | None = None, status: str | None = None) -> str:
    parts = ["assignee = currentUser()"]
    if status and status != "all":
        parts.append(f'status = "{escape_jql_string(status)}"')
    text = (search_text or "").strip()
    if text:
        escaped = escape_jql_string(text)
        parts.append(f'(summary ~ "{escaped}" OR key ~ "{escaped}")')
    return f"{' AND '.join(parts)} ORDER BY updated DESC"


def build_worklog_range_jql(start: date | str, end: date | str) -> str:
    return f"worklogAuthor = currentUser() AND {_date_range_clause(start, end)} ORDER BY updated DESC"


def build_epic_children_jql(epic_keys: Iterable[str]) -> str:
    keys = [k for k in epic_keys if k]
    if not keys:
        raise ValueError("At least one epic key is required")
    quoted = ", ".join(f'"{escape_jql_string(k)}"' for k in keys)
    return f"parent in ({quoted}) ORDER BY parent ASC"


def build_epic_issues_jql(epic_key: str) -> str:
    if not epic_key or not epic_key.strip():
        raise ValueError("Epic key is required")
    return f'parent = "{escape_jql_string(epic_key.strip())}" ORDER BY key ASC'


def build_project_epics_jql(project_key: str) -> str:
    return f'project = "{escape_jql_string(project_key)}" AND issuetype = Epic ORDER BY created DESC'


def build_board_jql(
    start: date | str,
    end: date | str,
    *,
    filter_id: int | str | None = None,
    project_key: str | None = None,
) -> str | None:
    """JQL for a board's worklogged issues; ``None`` if the board has no scope."""
    if filter_id is not None and str(filter_id).strip():
        scope = f"filter = {filter_id}"
    elif project_key:
        scope = f'project = "{escape_jql_string(project_key)}"'
    else:
        return None
    return f"{scope} AND {_date_range_clause(start, end)} ORDER BY updated DESC"
