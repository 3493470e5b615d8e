"""Mapping raw Jira REST JSON into typed models at the API boundary."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import pandas as pd

from .models import (
    BoardInfo,
    IssueModel,
    JiraUser,
    ParentRef,
    ProjectInfo,
    WorklogAuthor,
    WorklogEntry,
    WorklogItem,
    WorklogPage,
)

logger = logging.getLogger(__name__)


def parse_dt(val: Any) -> datetime | None:
    if not val:
        return None
    ts = pd.to_datetime(val, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def extract_comment_text(comment: Any) -> str:
    """Flatten an Atlassian Document Format fragment into plain text.

    Text nodes inside one paragraph are concatenated; paragraphs are joined
    with newlines. Plain strings (server/DC instances) pass through.
    """
    if comment is None:
        return ""
    if isinstance(comment, str):
        return comment

    def walk(node: Any, out: list[str]):
        if isinstance(node, dict):
            text = node.get("text")
            if isinstance(text, str):
                out.append(text)
            for child in node.get("content") or []:
                walk(child, out)
        elif isinstance(node, list):
            for item in node:
                walk(item, out)

    blocks = comment.get("content") if isinstance(comment, dict) else comment
    paragraphs: list[str] = []
    for block in blocks or []:
        parts: list[str] = []
        walk(block, parts)
        if parts:
            paragraphs.append("".join(parts))
    return "\n".join(paragraphs)


def map_user(raw: dict[str, Any]) -> JiraUser:
    return JiraUser(
        account_id=raw.get("accountId") or "",
        display_name=raw.get("displayName") or "",
        email_address=raw.get("emailAddress"),
    )


def map_worklog(raw: dict[str, Any]) -> WorklogEntry:
    author_raw = raw.get("author")
    author = None
    if isinstance(author_raw, dict):
        author = WorklogAuthor(
            account_id=author_raw.get("accountId"),
            display_name=author_raw.get("displayName"),
            email_address=author_raw.get("emailAddress"),
        )
    return WorklogEntry(
        id=str(raw.get("id") or ""),
        author=author,
        time_spent=raw.get("timeSpent"),
        time_spent_seconds=int(raw.get("timeSpentSeconds") or 0),
        started=parse_dt(raw.get("started")),
        comment=extract_comment_text(raw.get("comment")),
        created=parse_dt(raw.get("created")),
        updated=parse_dt(raw.get("updated")),
    )


def map_worklogs(raw_list: Iterable[dict[str, Any]] | None) -> list[WorklogEntry]:
    return [map_worklog(r) for r in raw_list or [] if isinstance(r, dict)]


def map_worklog_page(raw: dict[str, Any] | None) -> WorklogPage | None:
    if not isinstance(raw, dict):
        return None
    worklogs = map_worklogs(raw.get("worklogs"))
    return WorklogPage(
        start_at=int(raw.get("startAt") or 0),
        max_results=int(raw.get("maxResults") or len(worklogs)),
        total=int(raw.get("total") if raw.get("total") is not None else len(worklogs)),
        worklogs=worklogs,
    )


def map_project(raw: dict[str, Any]) -> ProjectInfo:
    return ProjectInfo(key=raw.get("key") or "", name=raw.get("name") or "")


def map_board(raw: dict[str, Any]) -> BoardInfo:
    location = raw.get("location")
    project_key = location.get("projectKey") if isinstance(location, dict) else None
    return BoardInfo(
        id=int(raw["id"]),
        name=raw.get("name") or "",
        project_key=project_key or None,
    )


def map_issue(raw: dict[str, Any]) -> IssueModel:
    fields = raw.get("fields") or {}

    parent = None
    parent_raw = fields.get("parent")
    if isinstance(parent_raw, dict) and parent_raw.get("key"):
        parent = ParentRef(
            key=parent_raw["key"],
            summary=(parent_raw.get("fields") or {}).get("summary") or "",
        )

    project_raw = fields.get("project")
    return IssueModel(
        key=raw.get("key"),
        summary=fields.get("summary") or "",
        status=(fields.get("status") or {}).get("name") if fields.get("status") else None,
        issuetype=(fields.get("issuetype") or {}).get("name") if fields.get("issuetype") else None,
        project=map_project(project_raw) if isinstance(project_raw, dict) else None,
        parent=parent,
        worklog=map_worklog_page(fields.get("worklog")),
    )


def map_issues(raw_issues: Iterable[dict[str, Any]] | None) -> list[IssueModel]:
    """Map search results, dropping records that carry no issue key."""
    out: list[IssueModel] = []
    for raw in raw_issues or []:
        if not isinstance(raw, dict) or not raw.get("key"):
            logger.debug("Skipping malformed issue record: %r", raw)
            continue
        out.append(map_issue(raw))
    return out


def to_worklog_item(entry: WorklogEntry, issue: IssueModel) -> WorklogItem:
    author = entry.author
    return WorklogItem(
        id=entry.id,
        issue_key=issue.key,
        issue_summary=issue.summary,
        project_key=issue.project.key if issue.project else None,
        author=(author.display_name or author.email_address) if author else None,
        author_account_id=author.account_id if author else None,
        time_spent=entry.time_spent,
        time_spent_seconds=entry.time_spent_seconds,
        started=entry.started,
        comment=entry.comment,
        created=entry.created,
        updated=entry.updated,
    )


def map_board_configuration(raw: Any) -> tuple[str | None, str | None]:
    """Return ``(filter_id, project_key)`` from a board configuration.

    Any part that is not shaped as expected resolves to ``None``.
    """
    if not isinstance(raw, dict):
        logger.debug("Ignoring non-object board configuration: %r", raw)
        return None, None
    filter_raw = raw.get("filter")
    filter_id = None
    if isinstance(filter_raw, dict) and filter_raw.get("id") is not None:
        filter_id = str(filter_raw["id"]).strip() or None
    project_key = None
    location = raw.get("location")
    if isinstance(location, dict) and location.get("type") == "project":
        key = location.get("key") or location.get("projectKey")
        project_key = key if isinstance(key, str) and key else None
    return filter_id, project_key
