"""Report building: fetch epic children and worklogs, then fold them into reports.

The aggregation functions are pure and operate on mapped models; the fetch
helpers take a ``JiraAPI`` and fan out through ``process_batch``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

import pytz

from .batch import process_batch
from .config import DEFAULT_TIMEZONE, REPORT_BATCH_LIMIT, REPORT_SEARCH_FIELDS, UNKNOWN_USER
from .jira_client import JiraAPI
from .jql import build_epic_children_jql, format_jql_date
from .mappers import map_issues, map_worklogs
from .models import (
    EpicInfo,
    EpicReport,
    IssueModel,
    IssueWorklog,
    MonthlyReport,
    UserEpicWorklog,
    UserWorklogSummary,
    WorklogEntry,
)

logger = logging.getLogger(__name__)

WorklogsByIssue = Mapping[str, Sequence[WorklogEntry]]
IssuesByEpic = Mapping[str, Sequence[IssueModel]]


@dataclass(frozen=True, slots=True)
class ReportContext:
    """Inclusive date range resolved to a half-open [start, end) window."""

    start_date: str
    end_date: str
    start: datetime
    end: datetime

    @classmethod
    def create(cls, start_date: date | str, end_date: date | str, tz: str = DEFAULT_TIMEZONE) -> ReportContext:
        start_str = format_jql_date(start_date)
        end_str = format_jql_date(end_date)
        start_day = date.fromisoformat(start_str)
        end_day = date.fromisoformat(end_str)
        if start_day > end_day:
            raise ValueError(f"Start date {start_str} is after end date {end_str}")
        zone = pytz.timezone(tz)
        return cls(
            start_date=start_str,
            end_date=end_str,
            start=zone.localize(datetime.combine(start_day, time.min)),
            end=zone.localize(datetime.combine(end_day + timedelta(days=1), time.min)),
        )

    @property
    def start_ms(self) -> int:
        return int(self.start.timestamp() * 1000)

    @property
    def end_ms(self) -> int:
        return int(self.end.timestamp() * 1000)

    def contains(self, started: datetime | None) -> bool:
        return started is not None and self.start <= started < self.end


def is_countable(worklog: WorklogEntry) -> bool:
    """Worklogs without an author account or a start time never count."""
    return bool(worklog.author and worklog.author.account_id and worklog.started)


# ------------------ Fetching ------------------
def fetch_issues_by_epics(api: JiraAPI, epic_keys: Sequence[str]) -> dict[str, list[IssueModel]]:
    """Fetch the children of all epics with a single ``parent in (...)`` search."""
    if not epic_keys:
        return {}
    raw = api.search_all(build_epic_children_jql(epic_keys), REPORT_SEARCH_FIELDS)
    return group_issues_by_parent(map_issues(raw))


def fetch_worklogs_for_issues(
    api: JiraAPI,
    ctx: ReportContext,
    issues: Sequence[IssueModel],
    limit: int = REPORT_BATCH_LIMIT,
) -> dict[str, list[WorklogEntry]]:
    """Fetch in-window worklogs per issue; a failing issue contributes nothing."""

    def _fetch(issue: IssueModel) -> tuple[str, list[WorklogEntry]]:
        try:
            raw = api.issue_worklogs(issue.key, started_after=ctx.start_ms, started_before=ctx.end_ms)
        except Exception as exc:
            logger.warning("Failed to fetch worklogs for %s: %s", issue.key, exc)
            return issue.key, []
        return issue.key, map_worklogs(raw)

    return dict(process_batch(issues, _fetch, limit))


# ------------------ Grouping ------------------
def group_issues_by_parent(issues: Iterable[IssueModel]) -> dict[str, list[IssueModel]]:
    grouped: dict[str, list[IssueModel]] = {}
    for issue in issues:
        if issue.parent is None:
            continue
        grouped.setdefault(issue.parent.key, []).append(issue)
    return grouped


def collect_epics(issues: Iterable[IssueModel]) -> list[EpicInfo]:
    """Deduplicated parent references, in first-seen order."""
    seen: dict[str, EpicInfo] = {}
    for issue in issues:
        parent = issue.parent
        if parent is None or parent.key in seen:
            continue
        seen[parent.key] = EpicInfo(epic_key=parent.key, epic_summary=parent.summary)
    return list(seen.values())


# ------------------ Aggregation ------------------
def aggregate_worklogs(
    ctx: ReportContext,
    issues: Sequence[IssueModel],
    worklogs_by_issue: WorklogsByIssue,
) -> tuple[list[UserEpicWorklog], int]:
    users: dict[str, UserEpicWorklog] = {}
    by_issue: dict[tuple[str, str], IssueWorklog] = {}
    total = 0

    for issue in issues:
        for wl in worklogs_by_issue.get(issue.key) or []:
            if not is_countable(wl) or not ctx.contains(wl.started):
                continue
            account_id = wl.author.account_id
            user = users.get(account_id)
            if user is None:
                user = UserEpicWorklog(
                    account_id=account_id,
                    display_name=wl.author.display_name or UNKNOWN_USER,
                    email_address=wl.author.email_address,
                )
                users[account_id] = user
            user.total_time_seconds += wl.time_spent_seconds
            total += wl.time_spent_seconds

            entry = by_issue.get((account_id, issue.key))
            if entry is None:
                entry = IssueWorklog(issue_key=issue.key, issue_summary=issue.summary)
                by_issue[(account_id, issue.key)] = entry
                user.issues.append(entry)
            entry.time_spent_seconds += wl.time_spent_seconds

    for user in users.values():
        user.issues.sort(key=lambda i: i.time_spent_seconds, reverse=True)
    ordered = sorted(users.values(), key=lambda u: u.total_time_seconds, reverse=True)
    return ordered, total


def build_epic_reports(
    ctx: ReportContext,
    epics: Iterable[EpicInfo],
    issues_by_epic: IssuesByEpic,
    worklogs_by_issue: WorklogsByIssue,
) -> tuple[list[EpicReport], int]:
    reports: list[EpicReport] = []
    grand_total = 0
    for epic in epics:
        issues = issues_by_epic.get(epic.epic_key) or []
        if not issues:
            continue
        users, total = aggregate_worklogs(ctx, issues, worklogs_by_issue)
        if total <= 0:
            continue
        reports.append(
            EpicReport(
                epic_key=epic.epic_key,
                epic_summary=epic.epic_summary,
                total_time_seconds=total,
                users=users,
            )
        )
        grand_total += total
    reports.sort(key=lambda r: r.total_time_seconds, reverse=True)
    return reports, grand_total


def create_monthly_report(ctx: ReportContext, reports: list[EpicReport], total_seconds: int) -> MonthlyReport:
    return MonthlyReport(
        start_date=ctx.start_date,
        end_date=ctx.end_date,
        total_time_seconds=total_seconds,
        epics=reports,
    )


def empty_report(ctx: ReportContext) -> MonthlyReport:
    return create_monthly_report(ctx, [], 0)


def summarize_user_worklogs(
    issues: Sequence[IssueModel],
    worklogs_by_issue: WorklogsByIssue,
) -> tuple[list[UserWorklogSummary], int]:
    """Flat per-user totals for the single-epic report (no date window)."""
    users: dict[str, UserWorklogSummary] = {}
    touched: dict[str, set[str]] = {}
    total = 0
    for issue in issues:
        for wl in worklogs_by_issue.get(issue.key) or []:
            if not is_countable(wl):
                continue
            account_id = wl.author.account_id
            user = users.get(account_id)
            if user is None:
                user = UserWorklogSummary(
                    account_id=account_id,
                    display_name=wl.author.display_name or UNKNOWN_USER,
                )
                users[account_id] = user
                touched[account_id] = set()
            user.total_time_seconds += wl.time_spent_seconds
            total += wl.time_spent_seconds
            touched[account_id].add(issue.key)

    for account_id, user in users.items():
        user.issues = sorted(touched[account_id])
    ordered = sorted(users.values(), key=lambda u: u.total_time_seconds, reverse=True)
    return ordered, total
