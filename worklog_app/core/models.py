"""Domain data models for issues, worklogs, and time-tracking reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class Credentials:
    base_url: str
    email: str
    api_token: str = field(repr=False)

    @property
    def server(self) -> str:
        return self.base_url.rstrip("/")

    @property
    def cache_key(self) -> str:
        return f"{self.server}:{self.email}"


@dataclass(slots=True)
class JiraUser:
    account_id: str
    display_name: str
    email_address: str | None = None


@dataclass(slots=True)
class WorklogAuthor:
    account_id: str | None
    display_name: str | None = None
    email_address: str | None = None


@dataclass(slots=True)
class WorklogEntry:
    id: str
    author: WorklogAuthor | None
    time_spent: str | None
    time_spent_seconds: int
    started: datetime | None
    comment: str = ""
    created: datetime | None = None
    updated: datetime | None = None


@dataclass(slots=True)
class WorklogPage:
    start_at: int
    max_results: int
    total: int
    worklogs: list[WorklogEntry] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """True when the embedded page already holds every worklog of the issue."""
        return self.total <= self.max_results


@dataclass(slots=True)
class ProjectInfo:
    key: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "name": self.name}


@dataclass(slots=True)
class BoardInfo:
    id: int
    name: str
    project_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.project_key:
            out["projectKey"] = self.project_key
        return out


@dataclass(slots=True)
class ParentRef:
    key: str
    summary: str = ""


@dataclass(slots=True)
class IssueModel:
    key: str
    summary: str
    status: str | None = None
    issuetype: str | None = None
    project: ProjectInfo | None = None
    parent: ParentRef | None = None
    worklog: WorklogPage | None = None


@dataclass(frozen=True, slots=True)
class EpicInfo:
    epic_key: str
    epic_summary: str


# ------------------ Ranged (monthly) report ------------------
@dataclass(slots=True)
class IssueWorklog:
    issue_key: str
    issue_summary: str
    time_spent_seconds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "issueKey": self.issue_key,
            "issueSummary": self.issue_summary,
            "timeSpentSeconds": self.time_spent_seconds,
        }


@dataclass(slots=True)
class UserEpicWorklog:
    account_id: str
    display_name: str
    email_address: str | None = None
    total_time_seconds: int = 0
    issues: list[IssueWorklog] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "accountId": self.account_id,
            "displayName": self.display_name,
            "totalTimeSeconds": self.total_time_seconds,
            "issues": [i.to_dict() for i in self.issues],
        }
        if self.email_address:
            out["emailAddress"] = self.email_address
        return out


@dataclass(slots=True)
class EpicReport:
    epic_key: str
    epic_summary: str
    total_time_seconds: int
    users: list[UserEpicWorklog] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "epicKey": self.epic_key,
            "epicSummary": self.epic_summary,
            "totalTimeSeconds": self.total_time_seconds,
            "users": [u.to_dict() for u in self.users],
        }


@dataclass(slots=True)
class MonthlyReport:
    """Time report over an inclusive date range (not necessarily a month)."""

    start_date: str
    end_date: str
    total_time_seconds: int
    epics: list[EpicReport] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": self.start_date,
            "endDate": self.end_date,
            "totalTimeSeconds": self.total_time_seconds,
            "epics": [e.to_dict() for e in self.epics],
        }


# ------------------ Single-epic report ------------------
@dataclass(slots=True)
class UserWorklogSummary:
    account_id: str
    display_name: str
    total_time_seconds: int = 0
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "accountId": self.account_id,
            "displayName": self.display_name,
            "totalTimeSeconds": self.total_time_seconds,
            "issues": list(self.issues),
        }


@dataclass(slots=True)
class EpicWorklogReport:
    total_issues: int
    total_time_seconds: int
    users: list[UserWorklogSummary] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalIssues": self.total_issues,
            "totalTimeSeconds": self.total_time_seconds,
            "users": [u.to_dict() for u in self.users],
        }


@dataclass(slots=True)
class ActiveEpic:
    key: str
    summary: str
    issues_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "summary": self.summary, "issuesCount": self.issues_count}


# ------------------ Worklog history / task search ------------------
@dataclass(slots=True)
class WorklogItem:
    id: str
    issue_key: str
    issue_summary: str
    project_key: str | None
    author: str | None
    author_account_id: str | None
    time_spent: str | None
    time_spent_seconds: int
    started: datetime
    comment: str = ""
    created: datetime | None = None
    updated: datetime | None = None


@dataclass(slots=True)
class WorklogHistory:
    worklogs: list[WorklogItem] = field(default_factory=list)
    total_issues: int = 0


@dataclass(slots=True)
class TaskSearchResult:
    issues: list[IssueModel] = field(default_factory=list)
    total: int = 0
    has_more: bool = False
