"""Chart builders (Altair) for worklog reports."""

from __future__ import annotations

from collections.abc import Iterable

import altair as alt
import pandas as pd

from worklog_app.core.config import NO_EPIC_LABEL
from worklog_app.core.export import to_hours
from worklog_app.core.models import MonthlyReport, WorklogItem


def epic_hours_chart(report: MonthlyReport):
    """Horizontal bars of hours per epic, largest first."""
    if not report.epics:
        return None, pd.DataFrame()
    chart_df = pd.DataFrame(
        [
            {
                "epic": e.epic_key or NO_EPIC_LABEL,
                "summary": e.epic_summary,
                "hours": to_hours(e.total_time_seconds),
                "contributors": len(e.users),
            }
            for e in report.epics
        ]
    )
    chart = (
        alt.Chart(chart_df)
        .mark_bar(color="#1f77b4")
        .encode(
            x=alt.X("hours:Q", title="Hours"),
            y=alt.Y("epic:N", sort="-x", title="Epic"),
            tooltip=[
                alt.Tooltip("epic:N", title="Epic"),
                alt.Tooltip("summary:N", title="Summary"),
                alt.Tooltip("hours:Q", title="Hours"),
                alt.Tooltip("contributors:Q", title="Contributors"),
            ],
        )
        .properties(height=max(120, 28 * len(chart_df)))
    )
    return chart, chart_df


def user_hours_chart(report: MonthlyReport):
    """Stacked bars of hours per user, split by epic."""
    rows = [
        {
            "user": user.display_name,
            "epic": epic.epic_key or NO_EPIC_LABEL,
            "hours": to_hours(user.total_time_seconds),
        }
        for epic in report.epics
        for user in epic.users
    ]
    if not rows:
        return None, pd.DataFrame()
    chart_df = pd.DataFrame(rows)
    chart = (
        alt.Chart(chart_df)
        .mark_bar()
        .encode(
            x=alt.X("sum(hours):Q", title="Hours"),
            y=alt.Y("user:N", sort="-x", title="User"),
            color=alt.Color("epic:N", title="Epic"),
            tooltip=[
                alt.Tooltip("user:N", title="User"),
                alt.Tooltip("epic:N", title="Epic"),
                alt.Tooltip("hours:Q", title="Hours"),
            ],
        )
    )
    return chart, chart_df


def daily_hours_chart(worklogs: Iterable[WorklogItem]):
    """Hours logged per calendar day."""
    rows = [{"date": wl.started.date(), "seconds": wl.time_spent_seconds} for wl in worklogs if wl.started]
    if not rows:
        return None, pd.DataFrame()
    agg = pd.DataFrame(rows).groupby("date", as_index=False)["seconds"].sum()
    agg["hours"] = (agg["seconds"] / 3600).round(2)
    agg["date"] = pd.to_datetime(agg["date"])
    chart = (
        alt.Chart(agg)
        .mark_bar(color="#2ca02c")
        .encode(
            x=alt.X("date:T", title="Date"),
            y=alt.Y("hours:Q", title="Hours"),
            tooltip=[alt.Tooltip("date:T", title="Date"), alt.Tooltip("hours:Q", title="Hours")],
        )
    )
    return chart, agg
