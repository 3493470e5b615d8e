"""My tasks page: search assigned issues, log work, and review worklog history."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

import pandas as pd
import pytz
import streamlit as st

from worklog_app.app import register_page
from worklog_app.core.config import DEFAULT_DATE_RANGE_DAYS, TASK_STATUS_OPTIONS
from worklog_app.core.errors import ExternalServiceError
from worklog_app.core.export import XLSX_MIME, to_csv_bytes, to_excel_bytes, worklog_history_frame
from worklog_app.core.models import Credentials, WorklogItem
from worklog_app.core.service import WorklogService, build_worklog_payload
from worklog_app.visual.charts import daily_hours_chart
from worklog_app.visual.progress import ProgressReporter, describe_error
from worklog_app.visual.tables import render_linked_table

logger = logging.getLogger(__name__)


def _task_frame(issues) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Issue Key": i.key,
                "Summary": i.summary,
                "Status": i.status or "",
                "Type": i.issuetype or "",
                "Project": i.project.key if i.project else "",
            }
            for i in issues
        ],
        columns=["Issue Key", "Summary", "Status", "Type", "Project"],
    )


def worklog_label(wl: WorklogItem) -> str:
    # Worklog id keeps labels unique when two entries look identical
    return f"{wl.issue_key} | {wl.started:%Y-%m-%d %H:%M} | {wl.time_spent or wl.time_spent_seconds} | #{wl.id}"


def _started_at(day: date, at: time, tz_name: str) -> datetime:
    return pytz.timezone(tz_name).localize(datetime.combine(day, at))


def _render_search(service: WorklogService, credentials: Credentials, server: str):
    st.subheader("Assigned tasks")
    col1, col2 = st.columns([3, 1])
    with col1:
        search_text = st.text_input("Search summary or key", value="")
    with col2:
        status = st.selectbox("Status", TASK_STATUS_OPTIONS)
    if st.button("Search Tasks", type="primary"):
        try:
            result = service.search_my_tasks(credentials, search_text, status)
        except ExternalServiceError as exc:
            logger.warning("Task search failed: %s", exc)
            st.error(f"Task search failed: {describe_error(exc)}")
            return
        st.session_state["task_results"] = result
    result = st.session_state.get("task_results")
    if result is None:
        return
    if not result.issues:
        st.info("No matching tasks.")
        return
    more = " More exist; refine the search to narrow them down." if result.has_more else ""
    st.caption(f"Showing {len(result.issues)} task(s).{more}")
    render_linked_table(_task_frame(result.issues), server)


def _render_log_work(service: WorklogService, credentials: Credentials):
    st.subheader("Log work")
    result = st.session_state.get("task_results")
    keys = [i.key for i in result.issues] if result else []
    with st.form("log_work"):
        issue_key = st.selectbox("Issue", keys) if keys else st.text_input("Issue key")
        day = st.date_input("Date", value=date.today())
        at = st.time_input("Start time", value=time(9, 0))
        duration = st.text_input("Time spent", value="1h", help="Jira duration, e.g. 1h 30m")
        comment = st.text_area("Comment", value="")
        submitted = st.form_submit_button("Log Work")
    if not submitted:
        return
    if not issue_key or not duration.strip():
        st.error("Issue and time spent are required.")
        return
    payload = build_worklog_payload(
        _started_at(day, at, service.settings.timezone),
        time_spent=duration.strip(),
        comment=comment.strip() or None,
    )
    try:
        service.create_worklog(credentials, issue_key.strip(), payload)
    except ExternalServiceError as exc:
        logger.warning("Logging work on %s failed: %s", issue_key, exc)
        st.error(f"Failed to log work: {describe_error(exc)}")
        return
    service.caches.reports.clear()
    st.success(f"Logged {duration.strip()} on {issue_key}.")


def _render_edit_worklog(service: WorklogService, credentials: Credentials):
    history = st.session_state.get("worklog_history")
    if history is None or not history.worklogs:
        return
    st.subheader("Edit or delete a worklog")
    by_label = {worklog_label(wl): wl for wl in history.worklogs}
    label = st.selectbox("Worklog", list(by_label))
    selected = by_label[label]
    with st.form("edit_worklog"):
        duration = st.text_input("Time spent", value=selected.time_spent or "")
        comment = st.text_area("Comment", value=selected.comment)
        col1, col2 = st.columns(2)
        with col1:
            update = st.form_submit_button("Update")
        with col2:
            delete = st.form_submit_button("Delete")
    try:
        if update:
            payload = build_worklog_payload(selected.started, time_spent=duration.strip(), comment=comment.strip() or None)
            service.update_worklog(credentials, selected.issue_key, selected.id, payload)
            st.success(f"Updated worklog {selected.id} on {selected.issue_key}.")
        elif delete:
            service.delete_worklog(credentials, selected.issue_key, selected.id)
            st.success(f"Deleted worklog {selected.id} on {selected.issue_key}.")
        else:
            return
    except (ExternalServiceError, ValueError) as exc:
        logger.warning("Worklog change on %s failed: %s", selected.issue_key, exc)
        st.error(f"Worklog change failed: {describe_error(exc)}")
        return
    service.caches.reports.clear()
    st.session_state.pop("worklog_history", None)


def _render_history(service: WorklogService, credentials: Credentials, server: str):
    st.subheader("Worklog history")
    today = date.today()
    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("From", value=today - timedelta(days=DEFAULT_DATE_RANGE_DAYS), key="history_start")
    with col2:
        end = st.date_input("To", value=today, key="history_end")
    if st.button("Load History"):
        reporter = ProgressReporter("Loading worklog history")
        try:
            history = service.get_worklog_history(credentials, start, end, progress=reporter.callback)
        except (ExternalServiceError, ValueError) as exc:
            reporter.fail("Loading worklog history", exc)
            return
        st.session_state["worklog_history"] = history
        reporter.complete(f"Loaded {len(history.worklogs)} worklog(s) from {history.total_issues} issue(s).")

    history = st.session_state.get("worklog_history")
    if history is None:
        st.info("No history loaded yet.")
        return
    if not history.worklogs:
        st.info("No worklogs in the selected range.")
        return
    chart, _ = daily_hours_chart(history.worklogs)
    if chart is not None:
        st.altair_chart(chart, use_container_width=True)
    frame = worklog_history_frame(history.worklogs)
    render_linked_table(frame, server)
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "Download Excel",
            data=to_excel_bytes({"Worklogs": frame}),
            file_name=f"worklogs_{start}_{end}.xlsx",
            mime=XLSX_MIME,
        )
    with col2:
        st.download_button(
            "Download CSV",
            data=to_csv_bytes(frame),
            file_name=f"worklogs_{start}_{end}.csv",
            mime="text/csv",
        )


@register_page("My Tasks & Worklogs")
def tasks_page():
    st.title("My Tasks & Worklogs")
    service: WorklogService | None = st.session_state.get("worklog_service")
    credentials: Credentials | None = st.session_state.get("credentials")
    if service is None or credentials is None:
        st.warning("Initialize connection on Setup page first.")
        return
    server = st.session_state.get("jira_server", credentials.server)

    _render_search(service, credentials, server)
    st.markdown("---")
    _render_log_work(service, credentials)
    st.markdown("---")
    _render_history(service, credentials, server)
    _render_edit_worklog(service, credentials)
