"""Reports page: single-epic totals, active epics, and ranged time reports."""

from __future__ import annotations

import logging
from datetime import date, timedelta

import streamlit as st

from worklog_app.app import register_page
from worklog_app.core.config import DEFAULT_DATE_RANGE_DAYS
from worklog_app.core.errors import ExternalServiceError
from worklog_app.core.export import (
    XLSX_MIME,
    active_epics_frame,
    epic_report_frame,
    format_duration,
    monthly_detail_frame,
    monthly_report_sheets,
    monthly_summary_frame,
    to_excel_bytes,
)
from worklog_app.core.models import Credentials
from worklog_app.core.service import WorklogService
from worklog_app.visual.charts import epic_hours_chart, user_hours_chart
from worklog_app.visual.progress import ProgressReporter, describe_error
from worklog_app.visual.tables import render_linked_table

logger = logging.getLogger(__name__)

SCOPES = ("My epics", "Project", "Board")


def _date_range(prefix: str) -> tuple[date, date]:
    today = date.today()
    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("From", value=today.replace(day=1), key=f"{prefix}_start")
    with col2:
        end = st.date_input("To", value=today, key=f"{prefix}_end")
    return start, end


def _epic_report_tab(service: WorklogService, credentials: Credentials):
    epic_key = st.text_input("Epic key", value=st.session_state.get("epic_key", ""), placeholder="PROJ-123")
    if st.button("Build Epic Report", type="primary"):
        if not epic_key.strip():
            st.error("Epic key is required.")
            return
        reporter = ProgressReporter(f"Building report for {epic_key.strip()}")
        try:
            report = service.get_epic_worklog_report(credentials, epic_key.strip(), progress=reporter.callback)
        except ExternalServiceError as exc:
            reporter.fail(f"Epic report for {epic_key.strip()}", exc)
            return
        st.session_state["epic_key"] = epic_key.strip()
        st.session_state["epic_report"] = report
        reporter.complete(f"{report.total_issues} issue(s), {format_duration(report.total_time_seconds)} logged.")

    report = st.session_state.get("epic_report")
    if report is None:
        return
    if not report.users:
        st.info("No time logged on this epic.")
        return
    frame = epic_report_frame(report)
    st.dataframe(frame, hide_index=True, use_container_width=True)
    st.download_button(
        "Download Excel",
        data=to_excel_bytes({"Epic Report": frame}),
        file_name=f"epic_{st.session_state.get('epic_key', 'report')}.xlsx",
        mime=XLSX_MIME,
    )


def _active_epics_tab(service: WorklogService, credentials: Credentials, server: str):
    today = date.today()
    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("From", value=today - timedelta(days=DEFAULT_DATE_RANGE_DAYS), key="active_start")
    with col2:
        end = st.date_input("To", value=today, key="active_end")
    if st.button("Find Active Epics", type="primary"):
        try:
            epics = service.get_active_epics(credentials, start, end)
        except (ExternalServiceError, ValueError) as exc:
            logger.warning("Active epics lookup failed: %s", exc)
            st.error(f"Failed to find active epics: {describe_error(exc)}")
            return
        st.session_state["active_epics"] = (epics, str(start), str(end))

    stored = st.session_state.get("active_epics")
    if stored is None:
        return
    epics, start_str, end_str = stored
    if not epics:
        st.info("You did not log time under any epic in this range.")
        return
    render_linked_table(active_epics_frame(epics, start_str, end_str), server, key_col="Epic Key")


def _scope_selector(service: WorklogService, credentials: Credentials):
    """Return ``(scope, scope_id)``; ``scope_id`` is None when nothing is selectable."""
    scope = st.radio("Scope", SCOPES, horizontal=True)
    if scope == "Project":
        try:
            projects = service.get_my_projects(credentials)
        except ExternalServiceError as exc:
            st.error(f"Failed to list projects: {describe_error(exc)}")
            return scope, None
        if not projects:
            st.info("No projects visible to this account.")
            return scope, None
        labels = {f"{p.key} - {p.name}": p.key for p in projects}
        return scope, labels[st.selectbox("Project", list(labels))]
    if scope == "Board":
        try:
            boards = service.get_boards(credentials)
        except ExternalServiceError as exc:
            st.error(f"Failed to list boards: {describe_error(exc)}")
            return scope, None
        if not boards:
            st.info("No boards visible to this account.")
            return scope, None
        labels = {f"{b.name} ({b.project_key or b.id})": b.id for b in boards}
        return scope, labels[st.selectbox("Board", list(labels))]
    return scope, "me"


def _time_report_tab(service: WorklogService, credentials: Credentials, server: str):
    scope, scope_id = _scope_selector(service, credentials)
    start, end = _date_range("report")
    if st.button("Build Time Report", type="primary", disabled=scope_id is None):
        reporter = ProgressReporter(f"Building {scope.lower()} report {start} to {end}")
        try:
            if scope == "Project":
                report = service.get_monthly_report_by_project(
                    credentials, scope_id, start, end, progress=reporter.callback
                )
            elif scope == "Board":
                report = service.get_monthly_report_by_board(credentials, scope_id, start, end, progress=reporter.callback)
            else:
                report = service.get_monthly_report(credentials, start, end, progress=reporter.callback)
        except (ExternalServiceError, ValueError) as exc:
            reporter.fail(f"{scope} report", exc)
            return
        st.session_state["time_report"] = report
        reporter.complete(f"{len(report.epics)} epic(s), {format_duration(report.total_time_seconds)} logged.")

    report = st.session_state.get("time_report")
    if report is None:
        return
    if not report.epics:
        st.info(f"No time logged between {report.start_date} and {report.end_date}.")
        return

    st.metric("Total logged", format_duration(report.total_time_seconds))
    epic_chart, _ = epic_hours_chart(report)
    if epic_chart is not None:
        st.altair_chart(epic_chart, use_container_width=True)
    user_chart, _ = user_hours_chart(report)
    if user_chart is not None:
        st.altair_chart(user_chart, use_container_width=True)

    render_linked_table(monthly_summary_frame(report), server, key_col="Epic Key")
    with st.expander("Details per issue"):
        render_linked_table(monthly_detail_frame(report), server)
    st.download_button(
        "Download Excel",
        data=to_excel_bytes(monthly_report_sheets(report)),
        file_name=f"worklog_report_{report.start_date}_{report.end_date}.xlsx",
        mime=XLSX_MIME,
    )


@register_page("Reports")
def reports_page():
    st.title("Worklog Reports")
    service: WorklogService | None = st.session_state.get("worklog_service")
    credentials: Credentials | None = st.session_state.get("credentials")
    if service is None or credentials is None:
        st.warning("Initialize connection on Setup page first.")
        return
    server = st.session_state.get("jira_server", credentials.server)

    time_tab, epic_tab, active_tab = st.tabs(["Time Report", "Epic Report", "Active Epics"])
    with time_tab:
        _time_report_tab(service, credentials, server)
    with epic_tab:
        _epic_report_tab(service, credentials)
    with active_tab:
        _active_epics_tab(service, credentials, server)
