from datetime import UTC, datetime

from worklog_app.core.models import EpicReport, IssueWorklog, MonthlyReport, UserEpicWorklog, WorklogItem
from worklog_app.visual.charts import daily_hours_chart, epic_hours_chart, user_hours_chart


def _report():
    users = [
        UserEpicWorklog("u1", "Ann", total_time_seconds=7200, issues=[IssueWorklog("T-1", "One", 7200)]),
        UserEpicWorklog("u2", "Bob", total_time_seconds=1800, issues=[IssueWorklog("T-2", "Two", 1800)]),
    ]
    epics = [EpicReport("E-1", "Epic one", 9000, users)]
    return MonthlyReport("2024-01-01", "2024-01-31", 9000, epics)


def _item(wid, started, seconds):
    return WorklogItem(
        id=wid,
        issue_key="T-1",
        issue_summary="One",
        project_key="T",
        author="Ann",
        author_account_id="u1",
        time_spent=None,
        time_spent_seconds=seconds,
        started=started,
    )


def test_epic_hours_chart_shapes():
    chart, data = epic_hours_chart(_report())
    assert chart is not None
    assert data.loc[0, "hours"] == 2.5
    assert data.loc[0, "contributors"] == 2


def test_user_hours_chart_shapes():
    chart, data = user_hours_chart(_report())
    assert chart is not None
    assert list(data["user"]) == ["Ann", "Bob"]


def test_charts_empty_report():
    empty = MonthlyReport("2024-01-01", "2024-01-31", 0, [])
    assert epic_hours_chart(empty)[0] is None
    assert user_hours_chart(empty)[0] is None
    assert daily_hours_chart([])[0] is None


def test_daily_hours_chart_groups_by_day():
    items = [
        _item("1", datetime(2024, 1, 2, 9, tzinfo=UTC), 3600),
        _item("2", datetime(2024, 1, 2, 14, tzinfo=UTC), 1800),
        _item("3", datetime(2024, 1, 3, 9, tzinfo=UTC), 900),
    ]
    chart, data = daily_hours_chart(items)
    assert chart is not None
    assert list(data["hours"]) == [1.5, 0.25]
