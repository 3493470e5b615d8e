"""Flatten reports into DataFrames and serialize them for download."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from io import BytesIO

import pandas as pd

from .config import NO_EPIC_LABEL
from .models import ActiveEpic, EpicReport, EpicWorklogReport, MonthlyReport, WorklogItem

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_NAME_LIMIT = 31
_SHEET_FORBIDDEN = re.compile(r"[\\/*?:\[\]]")


def format_duration(seconds: int | float) -> str:
    seconds = int(seconds or 0)
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def to_hours(seconds: int | float) -> float:
    return round((seconds or 0) / 3600, 2)


def safe_sheet_name(name: str) -> str:
    cleaned = _SHEET_FORBIDDEN.sub(" ", name or "").strip()
    return (cleaned or "Sheet")[:SHEET_NAME_LIMIT]


def worklog_history_frame(worklogs: Iterable[WorklogItem]) -> pd.DataFrame:
    worklogs = list(worklogs)
    rows = [
        {
            "Date": wl.started.date() if wl.started else None,
            "Issue Key": wl.issue_key,
            "Summary": wl.issue_summary,
            "Project": wl.project_key or "",
            "Time Spent": wl.time_spent or format_duration(wl.time_spent_seconds),
            "Hours": to_hours(wl.time_spent_seconds),
            "Comment": wl.comment,
        }
        for wl in worklogs
    ]
    df = pd.DataFrame(rows, columns=["Date", "Issue Key", "Summary", "Project", "Time Spent", "Hours", "Comment"])
    if df.empty:
        return df
    total = sum(wl.time_spent_seconds for wl in worklogs)
    return _append_total(df, {"Summary": "Total", "Time Spent": format_duration(total), "Hours": to_hours(total)})


def epic_report_frame(report: EpicWorklogReport) -> pd.DataFrame:
    rows = [
        {
            "User": u.display_name,
            "Time Spent": format_duration(u.total_time_seconds),
            "Hours": to_hours(u.total_time_seconds),
            "Issues Worked": len(u.issues),
            "Issue Keys": ", ".join(u.issues),
        }
        for u in report.users
    ]
    df = pd.DataFrame(rows, columns=["User", "Time Spent", "Hours", "Issues Worked", "Issue Keys"])
    return _append_total(
        df,
        {
            "User": "Total",
            "Time Spent": format_duration(report.total_time_seconds),
            "Hours": to_hours(report.total_time_seconds),
            "Issues Worked": report.total_issues,
            "Issue Keys": "",
        },
    )


def active_epics_frame(epics: Iterable[ActiveEpic], start_date: str, end_date: str) -> pd.DataFrame:
    epics = list(epics)
    df = pd.DataFrame(
        [{"Epic Key": e.key, "Summary": e.summary, "Issues Count": e.issues_count} for e in epics],
        columns=["Epic Key", "Summary", "Issues Count"],
    )
    return _append_total(
        df,
        {"Epic Key": "", "Summary": f"Total ({start_date} - {end_date})", "Issues Count": sum(e.issues_count for e in epics)},
    )


def monthly_summary_frame(report: MonthlyReport) -> pd.DataFrame:
    rows = [
        {
            "Epic Key": e.epic_key or NO_EPIC_LABEL,
            "Epic Summary": e.epic_summary,
            "Total Time": format_duration(e.total_time_seconds),
            "Hours": to_hours(e.total_time_seconds),
            "Contributors": len(e.users),
        }
        for e in report.epics
    ]
    df = pd.DataFrame(rows, columns=["Epic Key", "Epic Summary", "Total Time", "Hours", "Contributors"])
    return _append_total(
        df,
        {
            "Epic Key": "",
            "Epic Summary": "Grand Total",
            "Total Time": format_duration(report.total_time_seconds),
            "Hours": to_hours(report.total_time_seconds),
            "Contributors": "",
        },
    )


def monthly_detail_frame(report: MonthlyReport) -> pd.DataFrame:
    """One row per (epic, user, issue), in report order."""
    rows = []
    for epic in report.epics:
        for user in epic.users:
            for issue in user.issues:
                rows.append(
                    {
                        "Epic Key": epic.epic_key or NO_EPIC_LABEL,
                        "Epic Summary": epic.epic_summary,
                        "User": user.display_name,
                        "Issue Key": issue.issue_key,
                        "Issue Summary": issue.issue_summary,
                        "Time Spent": format_duration(issue.time_spent_seconds),
                        "Hours": to_hours(issue.time_spent_seconds),
                    }
                )
    return pd.DataFrame(
        rows,
        columns=["Epic Key", "Epic Summary", "User", "Issue Key", "Issue Summary", "Time Spent", "Hours"],
    )


def epic_sheet_frame(epic: EpicReport) -> pd.DataFrame:
    """User subtotal rows, each followed by that user's issue rows."""
    rows = []
    for user in epic.users:
        rows.append(
            {
                "User": user.display_name,
                "Issue Key": "",
                "Issue Summary": f"Subtotal: {len(user.issues)} issues",
                "Time Spent": format_duration(user.total_time_seconds),
                "Hours": to_hours(user.total_time_seconds),
            }
        )
        for issue in user.issues:
            rows.append(
                {
                    "User": "",
                    "Issue Key": issue.issue_key,
                    "Issue Summary": issue.issue_summary,
                    "Time Spent": format_duration(issue.time_spent_seconds),
                    "Hours": to_hours(issue.time_spent_seconds),
                }
            )
    return pd.DataFrame(rows, columns=["User", "Issue Key", "Issue Summary", "Time Spent", "Hours"])


def monthly_report_sheets(report: MonthlyReport) -> dict[str, pd.DataFrame]:
    sheets = {"Summary": monthly_summary_frame(report), "Details": monthly_detail_frame(report)}
    for epic in report.epics:
        name = safe_sheet_name(epic.epic_key or "No Epic")
        if name in sheets:
            continue
        sheets[name] = epic_sheet_frame(epic)
    return sheets


def to_excel_bytes(sheets: Mapping[str, pd.DataFrame]) -> bytes:
    bio = BytesIO()
    with pd.ExcelWriter(bio, engine="openpyxl") as writer:
        for name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=safe_sheet_name(name), index=False)
    logger.debug("Exported %s sheet(s) to xlsx", len(sheets))
    return bio.getvalue()


def to_csv_bytes(frame: pd.DataFrame, encoding: str = "utf-8") -> bytes:
    return frame.to_csv(index=False).encode(encoding)


def _append_total(df: pd.DataFrame, total_row: dict) -> pd.DataFrame:
    total = pd.DataFrame([{col: total_row.get(col, "") for col in df.columns}], columns=df.columns)
    if df.empty:
        return total
    return pd.concat([df, total], ignore_index=True)
