"""WorklogService: orchestrates fetching, caching, and report building."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

import pytz

from .batch import process_batch
from .cache import ServiceCaches, report_cache_key
from .config import (
    EPIC_LIST_FIELDS,
    EPIC_REPORT_FIELDS,
    HISTORY_SEARCH_FIELDS,
    MAX_TASK_RESULTS,
    REPORT_SEARCH_FIELDS,
    SETTINGS,
    TASK_SEARCH_FIELDS,
    AppSettings,
)
from .errors import ExternalServiceError
from .jira_client import JiraAPI
from .jql import (
    build_board_jql,
    build_epic_issues_jql,
    build_project_epics_jql,
    build_task_search_jql,
    build_worklog_range_jql,
)
from .mappers import (
    map_board,
    map_board_configuration,
    map_issues,
    map_project,
    map_user,
    map_worklogs,
    to_worklog_item,
)
from .models import (
    ActiveEpic,
    BoardInfo,
    Credentials,
    EpicInfo,
    EpicWorklogReport,
    IssueModel,
    JiraUser,
    MonthlyReport,
    ProjectInfo,
    TaskSearchResult,
    WorklogEntry,
    WorklogHistory,
    WorklogItem,
)
from .report_builder import (
    ReportContext,
    build_epic_reports,
    collect_epics,
    create_monthly_report,
    empty_report,
    fetch_issues_by_epics,
    fetch_worklogs_for_issues,
    group_issues_by_parent,
    is_countable,
    summarize_user_worklogs,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int | None, int | None], None]
ApiFactory = Callable[[Credentials], JiraAPI]
DateLike = date | str


def build_worklog_payload(
    started: datetime | str,
    *,
    time_spent_seconds: int | None = None,
    time_spent: str | None = None,
    comment: str | None = None,
) -> dict[str, Any]:
    """Build a Jira v3 worklog payload with an ADF comment document.

    Naive ``started`` datetimes are taken as UTC.
    """
    if isinstance(started, datetime):
        if started.tzinfo is None:
            started = pytz.UTC.localize(started)
        started = started.strftime("%Y-%m-%dT%H:%M:%S.000%z")
    payload: dict[str, Any] = {"started": started}
    if time_spent_seconds is not None:
        payload["timeSpentSeconds"] = int(time_spent_seconds)
    if time_spent:
        payload["timeSpent"] = time_spent
    if comment:
        payload["comment"] = {
            "type": "doc",
            "version": 1,
            "content": [{"type": "paragraph", "content": [{"type": "text", "text": comment}]}],
        }
    validate_worklog_payload(payload)
    return payload


def validate_worklog_payload(payload: dict[str, Any]) -> None:
    if not payload.get("started"):
        raise ValueError("Worklog payload requires 'started'")
    seconds = payload.get("timeSpentSeconds")
    if seconds is not None and seconds < 0:
        raise ValueError("timeSpentSeconds must not be negative")
    if seconds is None and not payload.get("timeSpent"):
        raise ValueError("Worklog payload requires 'timeSpent' or 'timeSpentSeconds'")


class WorklogService:
    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        caches: ServiceCaches | None = None,
        api_factory: ApiFactory | None = None,
    ):
        self.settings = settings or SETTINGS
        self.caches = caches or ServiceCaches.create(self.settings)
        self._api_factory = api_factory or self._default_api
        self._apis: dict[Credentials, JiraAPI] = {}
        self._lock = threading.Lock()

    def _default_api(self, credentials: Credentials) -> JiraAPI:
        return JiraAPI(credentials, timeout=self.settings.request_timeout)

    def api_for(self, credentials: Credentials) -> JiraAPI:
        with self._lock:
            api = self._apis.get(credentials)
            if api is None:
                api = self._api_factory(credentials)
                self._apis[credentials] = api
            return api

    def _context(self, start_date: DateLike, end_date: DateLike) -> ReportContext:
        return ReportContext.create(start_date, end_date, self.settings.timezone)

    # ------------------ Users / tasks ------------------
    def get_current_user(self, credentials: Credentials) -> JiraUser:
        cached = self.caches.users.get(credentials.cache_key)
        if cached is not None:
            return cached
        user = map_user(self.api_for(credentials).myself())
        self.caches.users.set(credentials.cache_key, user)
        return user

    def search_my_tasks(
        self,
        credentials: Credentials,
        search_text: str | None = None,
        status: str | None = None,
    ) -> TaskSearchResult:
        """First page of the acting user's assigned issues.

        The enhanced search reports no overall total; ``total`` counts the
        returned page and ``has_more`` is set when another page exists.
        """
        jql = build_task_search_jql(search_text, status)
        logger.debug("Searching tasks: %s", jql)
        data = self.api_for(credentials).search_page(jql, TASK_SEARCH_FIELDS, MAX_TASK_RESULTS)
        issues = map_issues(data.get("issues"))
        has_more = bool(data.get("nextPageToken")) and data.get("isLast") is not True
        return TaskSearchResult(issues=issues, total=len(issues), has_more=has_more)

    # ------------------ Worklog CRUD ------------------
    def create_worklog(self, credentials: Credentials, issue_key: str, payload: dict[str, Any]) -> Any:
        validate_worklog_payload(payload)
        logger.info("Creating worklog on %s", issue_key)
        return self.api_for(credentials).add_worklog(issue_key, payload)

    def update_worklog(
        self,
        credentials: Credentials,
        issue_key: str,
        worklog_id: str,
        payload: dict[str, Any],
    ) -> Any:
        validate_worklog_payload(payload)
        logger.info("Updating worklog %s on %s", worklog_id, issue_key)
        return self.api_for(credentials).update_worklog(issue_key, worklog_id, payload)

    def delete_worklog(self, credentials: Credentials, issue_key: str, worklog_id: str) -> dict[str, bool]:
        logger.info("Deleting worklog %s on %s", worklog_id, issue_key)
        self.api_for(credentials).delete_worklog(issue_key, worklog_id)
        return {"success": True}

    # ------------------ History ------------------
    def get_worklog_history(
        self,
        credentials: Credentials,
        start_date: DateLike,
        end_date: DateLike,
        *,
        progress: ProgressCallback | None = None,
    ) -> WorklogHistory:
        """The acting user's worklogs in the window, newest first."""
        ctx = self._context(start_date, end_date)
        user = self.get_current_user(credentials)
        api = self.api_for(credentials)
        logger.info("Fetching worklog history for %s (%s..%s)", user.display_name, ctx.start_date, ctx.end_date)
        if progress:
            progress("Finding issues you logged time on", None, None)
        jql = build_worklog_range_jql(ctx.start_date, ctx.end_date)
        issues = map_issues(api.search_all(jql, HISTORY_SEARCH_FIELDS))
        if not issues:
            return WorklogHistory(worklogs=[], total_issues=0)

        def _own(wl: WorklogEntry) -> bool:
            return is_countable(wl) and wl.author.account_id == user.account_id and ctx.contains(wl.started)

        def _fetch(issue: IssueModel) -> list[WorklogItem]:
            try:
                raw = api.issue_worklogs(issue.key, started_after=ctx.start_ms, started_before=ctx.end_ms)
            except Exception as exc:
                logger.warning("Failed to fetch worklogs for %s: %s", issue.key, exc)
                return []
            return [to_worklog_item(wl, issue) for wl in map_worklogs(raw) if _own(wl)]

        if progress:
            progress("Loading worklogs", 0, len(issues))
        batches = process_batch(issues, _fetch, self.settings.batch_limit)
        worklogs = [item for batch in batches for item in batch]
        worklogs.sort(key=lambda w: w.started, reverse=True)
        logger.info("Found %s worklog(s) across %s issue(s)", len(worklogs), len(issues))
        return WorklogHistory(worklogs=worklogs, total_issues=len(issues))

    # ------------------ Epic reports ------------------
    def get_epic_worklog_report(
        self,
        credentials: Credentials,
        epic_key: str,
        *,
        progress: ProgressCallback | None = None,
    ) -> EpicWorklogReport:
        """All-time per-user totals for one epic's child issues.

        Embedded worklog pages are used when complete; truncated ("heavy")
        issues are re-fetched individually.
        """
        api = self.api_for(credentials)
        if progress:
            progress(f"Querying issues of {epic_key}", None, None)
        issues = map_issues(api.search_all(build_epic_issues_jql(epic_key), EPIC_REPORT_FIELDS))

        worklogs_by_issue: dict[str, list[WorklogEntry]] = {}
        heavy: list[IssueModel] = []
        for issue in issues:
            page = issue.worklog
            if page is not None and page.is_complete:
                worklogs_by_issue[issue.key] = page.worklogs
            else:
                heavy.append(issue)

        def _fetch_all(issue: IssueModel) -> tuple[str, list[WorklogEntry]]:
            try:
                return issue.key, map_worklogs(api.all_issue_worklogs(issue.key))
            except Exception as exc:
                logger.warning("Failed to fetch full worklog list for %s: %s", issue.key, exc)
                return issue.key, []

        if heavy:
            logger.debug("Re-fetching worklogs for %s heavy issue(s) in %s", len(heavy), epic_key)
            if progress:
                progress("Loading complete worklog lists", 0, len(heavy))
            worklogs_by_issue.update(process_batch(heavy, _fetch_all, self.settings.batch_limit))

        users, total = summarize_user_worklogs(issues, worklogs_by_issue)
        return EpicWorklogReport(total_issues=len(issues), total_time_seconds=total, users=users)

    def get_active_epics(self, credentials: Credentials, start_date: DateLike, end_date: DateLike) -> list[ActiveEpic]:
        """Epics whose children the acting user logged time on, by child count."""
        ctx = self._context(start_date, end_date)
        jql = build_worklog_range_jql(ctx.start_date, ctx.end_date)
        issues = map_issues(self.api_for(credentials).search_all(jql, REPORT_SEARCH_FIELDS))
        grouped = group_issues_by_parent(issues)
        epics = [
            ActiveEpic(key=e.epic_key, summary=e.epic_summary, issues_count=len(grouped[e.epic_key]))
            for e in collect_epics(issues)
        ]
        epics.sort(key=lambda e: (-e.issues_count, e.key))
        return epics

    # ------------------ Ranged reports ------------------
    def get_monthly_report(
        self,
        credentials: Credentials,
        start_date: DateLike,
        end_date: DateLike,
        *,
        progress: ProgressCallback | None = None,
    ) -> MonthlyReport:
        """Report over epics the acting user logged time on (all contributors)."""
        ctx = self._context(start_date, end_date)
        user = self.get_current_user(credentials)
        key = report_cache_key(credentials, "user", user.account_id, ctx.start_date, ctx.end_date)
        cached = self.caches.reports.get(key)
        if cached is not None:
            return cached

        api = self.api_for(credentials)
        if progress:
            progress("Finding epics you worked on", None, None)
        jql = build_worklog_range_jql(ctx.start_date, ctx.end_date)
        epics = collect_epics(map_issues(api.search_all(jql, REPORT_SEARCH_FIELDS)))
        if progress:
            progress(f"Loading child issues of {len(epics)} epic(s)", None, None)
        issues_by_epic = fetch_issues_by_epics(api, [e.epic_key for e in epics])
        report = self._build_report(api, ctx, epics, issues_by_epic, self.settings.report_batch_limit, progress)
        self.caches.reports.set(key, report)
        return report

    def get_monthly_report_by_project(
        self,
        credentials: Credentials,
        project_key: str,
        start_date: DateLike,
        end_date: DateLike,
        *,
        progress: ProgressCallback | None = None,
    ) -> MonthlyReport:
        ctx = self._context(start_date, end_date)
        key = report_cache_key(credentials, "project", project_key, ctx.start_date, ctx.end_date)
        cached = self.caches.reports.get(key)
        if cached is not None:
            return cached

        api = self.api_for(credentials)
        if progress:
            progress(f"Querying epics of {project_key}", None, None)
        epic_issues = map_issues(api.search_all(build_project_epics_jql(project_key), EPIC_LIST_FIELDS))
        epics = [EpicInfo(epic_key=i.key, epic_summary=i.summary) for i in epic_issues]
        if progress:
            progress(f"Loading child issues of {len(epics)} epic(s)", None, None)
        issues_by_epic = fetch_issues_by_epics(api, [e.epic_key for e in epics])
        report = self._build_report(api, ctx, epics, issues_by_epic, self.settings.report_batch_limit, progress)
        self.caches.reports.set(key, report)
        return report

    def get_monthly_report_by_board(
        self,
        credentials: Credentials,
        board_id: int,
        start_date: DateLike,
        end_date: DateLike,
        *,
        progress: ProgressCallback | None = None,
    ) -> MonthlyReport:
        ctx = self._context(start_date, end_date)
        key = report_cache_key(credentials, "board", board_id, ctx.start_date, ctx.end_date)
        cached = self.caches.reports.get(key)
        if cached is not None:
            return cached

        api = self.api_for(credentials)
        if progress:
            progress(f"Resolving board {board_id}", None, None)
        filter_id, project_key = self._resolve_board_scope(credentials, board_id)
        jql = build_board_jql(ctx.start_date, ctx.end_date, filter_id=filter_id, project_key=project_key)
        if jql is None:
            logger.warning("Board %s has neither a filter nor a project; returning empty report", board_id)
            report = empty_report(ctx)
        else:
            if progress:
                progress("Searching board issues with worklogs", None, None)
            issues = map_issues(api.search_all(jql, REPORT_SEARCH_FIELDS))
            epics = collect_epics(issues)
            issues_by_epic = group_issues_by_parent(issues)
            report = self._build_report(api, ctx, epics, issues_by_epic, self.settings.board_batch_limit, progress)
        self.caches.reports.set(key, report)
        return report

    def _resolve_board_scope(self, credentials: Credentials, board_id: int) -> tuple[Any, str | None]:
        """Return ``(filter_id, project_key)`` for a board, degrading on errors."""
        filter_id = None
        project_key = None
        try:
            config = self.api_for(credentials).board_configuration(board_id)
        except ExternalServiceError as exc:
            logger.warning("Board %s configuration lookup failed, continuing without filter: %s", board_id, exc)
        else:
            filter_id, project_key = map_board_configuration(config)

        if filter_id is None and not project_key:
            try:
                board = next((b for b in self.get_boards(credentials) if b.id == int(board_id)), None)
            except ExternalServiceError as exc:
                logger.warning("Board list lookup failed for board %s: %s", board_id, exc)
                board = None
            if board is not None:
                project_key = board.project_key
        return filter_id, project_key

    def _build_report(
        self,
        api: JiraAPI,
        ctx: ReportContext,
        epics: list[EpicInfo],
        issues_by_epic: dict[str, list[IssueModel]],
        limit: int,
        progress: ProgressCallback | None,
    ) -> MonthlyReport:
        issues = [issue for epic in epics for issue in issues_by_epic.get(epic.epic_key, [])]
        if progress:
            progress(f"Loading worklogs for {len(issues)} issue(s)", 0, len(issues))
        worklogs_by_issue = fetch_worklogs_for_issues(api, ctx, issues, limit)
        if progress:
            progress("Aggregating worklogs", len(issues), len(issues))
        reports, total = build_epic_reports(ctx, epics, issues_by_epic, worklogs_by_issue)
        logger.info(
            "Built report %s..%s: %s epic(s), %s second(s)", ctx.start_date, ctx.end_date, len(reports), total
        )
        return create_monthly_report(ctx, reports, total)

    # ------------------ Projects / boards ------------------
    def get_my_projects(self, credentials: Credentials) -> list[ProjectInfo]:
        cached = self.caches.projects.get(credentials.cache_key)
        if cached is not None:
            return cached
        raw = self.api_for(credentials).list_projects()
        projects = sorted((map_project(r) for r in raw if r.get("key")), key=lambda p: p.key)
        self.caches.projects.set(credentials.cache_key, projects)
        return projects

    def get_boards(self, credentials: Credentials) -> list[BoardInfo]:
        cached = self.caches.boards.get(credentials.cache_key)
        if cached is not None:
            return cached
        raw = self.api_for(credentials).list_boards()
        boards = sorted(
            (map_board(r) for r in raw if isinstance(r, dict) and r.get("id") is not None), key=lambda b: b.name
        )
        self.caches.boards.set(credentials.cache_key, boards)
        return boards
