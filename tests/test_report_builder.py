from datetime import UTC, date, datetime

import pytest

from worklog_app.core.mappers import map_issues, map_worklogs
from worklog_app.core.models import EpicInfo
from worklog_app.core.report_builder import (
    ReportContext,
    aggregate_worklogs,
    build_epic_reports,
    collect_epics,
    create_monthly_report,
    fetch_worklogs_for_issues,
    group_issues_by_parent,
    summarize_user_worklogs,
)


def _wl(wid, account, seconds, started, name=None):
    author = {"accountId": account, "displayName": name or account} if account else None
    return {"id": wid, "author": author, "timeSpentSeconds": seconds, "started": started}


def _issue(key, parent=None, summary=None):
    fields = {"summary": summary or f"Summary {key}"}
    if parent:
        fields["parent"] = {"key": parent, "fields": {"summary": f"Epic {parent}"}}
    return {"key": key, "fields": fields}


JAN = ReportContext.create("2024-01-01", "2024-01-31")


def test_context_window_is_half_open_in_timezone():
    assert JAN.start == datetime(2024, 1, 1, tzinfo=UTC)
    assert JAN.end == datetime(2024, 2, 1, tzinfo=UTC)
    assert JAN.contains(datetime(2024, 1, 31, 23, 59, 59, tzinfo=UTC))
    assert not JAN.contains(datetime(2024, 2, 1, 0, 0, 0, tzinfo=UTC))
    assert not JAN.contains(None)
    assert JAN.start_ms == 1704067200000


def test_context_with_named_timezone():
    ctx = ReportContext.create(date(2024, 1, 1), date(2024, 1, 1), "America/Santiago")
    assert ctx.start.utcoffset().total_seconds() == -3 * 3600
    assert (ctx.end - ctx.start).days == 1


def test_context_rejects_inverted_range():
    with pytest.raises(ValueError):
        ReportContext.create("2024-02-01", "2024-01-01")


def test_single_epic_single_user():
    issues = map_issues([_issue("TASK-1", "EPIC-1")])
    worklogs = {
        "TASK-1": map_worklogs(
            [
                _wl("1", "u1", 3600, "2024-01-10T09:00:00.000+0000", "Ann"),
                _wl("2", "u1", 1800, "2024-01-11T09:00:00.000+0000", "Ann"),
            ]
        )
    }
    epics = collect_epics(issues)
    reports, total = build_epic_reports(JAN, epics, group_issues_by_parent(issues), worklogs)
    report = create_monthly_report(JAN, reports, total)

    assert report.total_time_seconds == 5400
    assert len(report.epics) == 1
    epic = report.epics[0]
    assert (epic.epic_key, epic.epic_summary, epic.total_time_seconds) == ("EPIC-1", "Epic EPIC-1", 5400)
    assert [(u.display_name, u.total_time_seconds) for u in epic.users] == [("Ann", 5400)]
    assert [(i.issue_key, i.time_spent_seconds) for i in epic.users[0].issues] == [("TASK-1", 5400)]
    assert report.to_dict()["epics"][0]["users"][0]["issues"][0]["issueKey"] == "TASK-1"


def test_window_boundaries_and_uncountable_worklogs():
    issues = map_issues([_issue("TASK-1", "EPIC-1")])
    worklogs = {
        "TASK-1": map_worklogs(
            [
                _wl("1", "u1", 100, "2024-01-31T23:59:59.000+0000"),
                _wl("2", "u1", 200, "2024-02-01T00:00:01.000+0000"),
                _wl("3", "u1", 400, "2023-12-31T23:59:59.000+0000"),
                _wl("4", None, 800, "2024-01-05T10:00:00.000+0000"),
                _wl("5", "u1", 1600, None),
            ]
        )
    }
    users, total = aggregate_worklogs(JAN, issues, worklogs)
    assert total == 100
    assert users[0].total_time_seconds == 100


def test_invariants_totals_sorting_and_omission():
    issues = map_issues(
        [
            _issue("A-1", "EPIC-A"),
            _issue("A-2", "EPIC-A"),
            _issue("B-1", "EPIC-B"),
            _issue("C-1", "EPIC-C"),
            _issue("ORPHAN-1"),
        ]
    )
    worklogs = {
        "A-1": map_worklogs([_wl("1", "u1", 600, "2024-01-02T10:00:00.000+0000")]),
        "A-2": map_worklogs(
            [
                _wl("2", "u1", 1200, "2024-01-03T10:00:00.000+0000"),
                _wl("3", "u2", 3000, "2024-01-03T11:00:00.000+0000"),
            ]
        ),
        "B-1": map_worklogs([_wl("4", "u2", 9000, "2024-01-04T10:00:00.000+0000")]),
        "C-1": map_worklogs([_wl("5", "u3", 500, "2024-03-01T10:00:00.000+0000")]),
        "ORPHAN-1": map_worklogs([_wl("6", "u1", 7200, "2024-01-04T10:00:00.000+0000")]),
    }
    reports, total = build_epic_reports(JAN, collect_epics(issues), group_issues_by_parent(issues), worklogs)

    assert [r.epic_key for r in reports] == ["EPIC-B", "EPIC-A"]
    assert total == sum(r.total_time_seconds for r in reports) == 13800
    for r in reports:
        assert r.total_time_seconds > 0
        assert r.total_time_seconds == sum(u.total_time_seconds for u in r.users)
        for u in r.users:
            assert u.total_time_seconds == sum(i.time_spent_seconds for i in u.issues)
        totals = [u.total_time_seconds for u in r.users]
        assert totals == sorted(totals, reverse=True)

    epic_a = reports[1]
    assert [u.account_id for u in epic_a.users] == ["u2", "u1"]
    assert [i.issue_key for i in epic_a.users[1].issues] == ["A-2", "A-1"]


def test_collect_epics_dedupes_in_first_seen_order():
    issues = map_issues([_issue("X-1", "E-2"), _issue("X-2", "E-1"), _issue("X-3", "E-2"), _issue("X-4")])
    assert collect_epics(issues) == [EpicInfo("E-2", "Epic E-2"), EpicInfo("E-1", "Epic E-1")]


def test_summarize_user_worklogs_counts_all_time():
    issues = map_issues([_issue("T-1"), _issue("T-2")])
    worklogs = {
        "T-1": map_worklogs(
            [_wl("1", "u1", 60, "2020-01-01T00:00:00.000+0000"), _wl("2", "u2", 30, "2024-01-01T00:00:00.000+0000")]
        ),
        "T-2": map_worklogs(
            [
                _wl("3", "u1", 60, "2021-01-01T00:00:00.000+0000"),
                {"id": "4", "author": {"accountId": "u3"}, "timeSpentSeconds": 10, "started": "2022-01-01"},
            ]
        ),
    }
    users, total = summarize_user_worklogs(issues, worklogs)
    assert total == 160
    assert [(u.account_id, u.total_time_seconds, u.issues) for u in users] == [
        ("u1", 120, ["T-1", "T-2"]),
        ("u2", 30, ["T-1"]),
        ("u3", 10, ["T-2"]),
    ]
    assert users[2].display_name == "Unknown"


class FlakyAPI:
    def issue_worklogs(self, issue_key, *, started_after=None, started_before=None, max_results=None):
        if issue_key == "BAD-1":
            raise RuntimeError("boom")
        return [_wl("1", "u1", 60, "2024-01-02T00:00:00.000+0000")]


def test_fetch_worklogs_failure_contributes_nothing():
    issues = map_issues([_issue("OK-1", "E"), _issue("BAD-1", "E")])
    result = fetch_worklogs_for_issues(FlakyAPI(), JAN, issues, limit=2)
    assert list(result) == ["OK-1", "BAD-1"]
    assert len(result["OK-1"]) == 1
    assert result["BAD-1"] == []
