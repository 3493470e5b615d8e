from datetime import UTC, datetime
from io import BytesIO

import pandas as pd

from worklog_app.core.export import (
    active_epics_frame,
    epic_report_frame,
    epic_sheet_frame,
    format_duration,
    monthly_detail_frame,
    monthly_report_sheets,
    monthly_summary_frame,
    safe_sheet_name,
    to_csv_bytes,
    to_excel_bytes,
    to_hours,
    worklog_history_frame,
)
from worklog_app.core.models import (
    ActiveEpic,
    EpicReport,
    EpicWorklogReport,
    IssueWorklog,
    MonthlyReport,
    UserEpicWorklog,
    UserWorklogSummary,
    WorklogItem,
)


def _report():
    ann = UserEpicWorklog(
        "u1",
        "Ann",
        total_time_seconds=5400,
        issues=[IssueWorklog("T-1", "One", 3600), IssueWorklog("T-2", "Two", 1800)],
    )
    bob = UserEpicWorklog("u2", "Bob", total_time_seconds=600, issues=[IssueWorklog("T-3", "Three", 600)])
    return MonthlyReport(
        "2024-01-01",
        "2024-01-31",
        6000,
        [EpicReport("E-1", "Epic one", 5400, [ann]), EpicReport("E-2", "Epic two", 600, [bob])],
    )


def test_duration_helpers():
    assert format_duration(5400) == "1h 30m"
    assert format_duration(0) == "0h 0m"
    assert to_hours(5400) == 1.5
    assert to_hours(None) == 0


def test_safe_sheet_name():
    assert safe_sheet_name("A/B:C") == "A B C"
    assert len(safe_sheet_name("x" * 40)) == 31
    assert safe_sheet_name("") == "Sheet"


def test_monthly_summary_has_grand_total():
    df = monthly_summary_frame(_report())
    assert list(df["Epic Key"][:2]) == ["E-1", "E-2"]
    total = df.iloc[-1]
    assert total["Epic Summary"] == "Grand Total"
    assert total["Hours"] == 1.67


def test_monthly_detail_rows():
    df = monthly_detail_frame(_report())
    assert len(df) == 3
    assert list(df["Issue Key"]) == ["T-1", "T-2", "T-3"]
    assert set(df["User"]) == {"Ann", "Bob"}


def test_epic_sheet_has_subtotals_before_issue_rows():
    df = epic_sheet_frame(_report().epics[0])
    assert list(df["User"]) == ["Ann", "", ""]
    assert df.iloc[0]["Issue Summary"] == "Subtotal: 2 issues"


def test_monthly_report_sheets_and_excel_roundtrip():
    sheets = monthly_report_sheets(_report())
    assert list(sheets) == ["Summary", "Details", "E-1", "E-2"]
    data = to_excel_bytes(sheets)
    loaded = pd.read_excel(BytesIO(data), sheet_name=None)
    assert set(loaded) == {"Summary", "Details", "E-1", "E-2"}
    assert len(loaded["Details"]) == 3


def test_epic_report_frame():
    report = EpicWorklogReport(
        total_issues=4,
        total_time_seconds=4200,
        users=[UserWorklogSummary("u1", "Ann", 3600, ["T-1", "T-2"]), UserWorklogSummary("u2", "Bob", 600, ["T-2"])],
    )
    df = epic_report_frame(report)
    assert list(df["User"]) == ["Ann", "Bob", "Total"]
    assert df.iloc[0]["Issue Keys"] == "T-1, T-2"
    assert df.iloc[-1]["Issues Worked"] == 4


def test_active_epics_frame_total():
    df = active_epics_frame([ActiveEpic("E-1", "One", 3), ActiveEpic("E-2", "Two", 1)], "2024-01-01", "2024-01-31")
    assert df.iloc[-1]["Issues Count"] == 4
    assert df.iloc[-1]["Summary"] == "Total (2024-01-01 - 2024-01-31)"


def test_worklog_history_frame_and_csv():
    items = [
        WorklogItem(
            id="1",
            issue_key="T-1",
            issue_summary="One",
            project_key="T",
            author="Ann",
            author_account_id="u1",
            time_spent="1h",
            time_spent_seconds=3600,
            started=datetime(2024, 1, 2, 9, tzinfo=UTC),
            comment="work",
        )
    ]
    df = worklog_history_frame(items)
    assert len(df) == 2
    assert df.iloc[-1]["Summary"] == "Total"
    assert df.iloc[-1]["Time Spent"] == "1h 0m"
    csv = to_csv_bytes(df).decode("utf-8")
    assert csv.splitlines()[0] == "Date,Issue Key,Summary,Project,Time Spent,Hours,Comment"


def test_worklog_history_frame_empty():
    assert worklog_history_frame([]).empty
