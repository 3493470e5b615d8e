"""Central configuration, constants, and tuning knobs for the worklog engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

# =============================================================================
# Jira API Endpoints
# =============================================================================
REST_API_PREFIX = "/rest/api/3"
AGILE_API_PREFIX = "/rest/agile/1.0"
SEARCH_PATH = "/search/jql"

# =============================================================================
# Page sizes / result limits
# =============================================================================
OFFSET_PAGE_SIZE = 100  # project/board list endpoints
SEARCH_PAGE_SIZE = 100  # enhanced search (nextPageToken)
MAX_TASK_RESULTS = 50
MAX_WORKLOGS_PER_ISSUE = 5000  # upper bound accepted by /issue/{key}/worklog
ERROR_PREVIEW_CHARS = 500

# =============================================================================
# Search field lists
# =============================================================================
TASK_SEARCH_FIELDS = ["key", "summary", "status", "issuetype", "project"]
HISTORY_SEARCH_FIELDS = ["key", "summary", "project"]
REPORT_SEARCH_FIELDS = ["key", "summary", "parent"]
EPIC_REPORT_FIELDS = ["key", "summary", "worklog"]
EPIC_LIST_FIELDS = ["key", "summary"]

# =============================================================================
# Concurrency & caching
# =============================================================================
DEFAULT_BATCH_LIMIT = 6
REPORT_BATCH_LIMIT = 10  # per-issue worklog fan-out for ranged reports
BOARD_BATCH_LIMIT = 25  # board reports touch many more issues
DEFAULT_CACHE_TTL = 300.0  # seconds
DEFAULT_CACHE_MAXSIZE = 256

# =============================================================================
# Display
# =============================================================================
DEFAULT_TIMEZONE = "UTC"
UNKNOWN_USER = "Unknown"
NO_EPIC_LABEL = "(No Epic)"
DEFAULT_DATE_RANGE_DAYS = 30
TASK_STATUS_OPTIONS = ("all", "To Do", "In Progress", "Done")


@dataclass(slots=True)
class AppSettings:
    cache_ttl: float = DEFAULT_CACHE_TTL
    cache_maxsize: int | None = DEFAULT_CACHE_MAXSIZE
    batch_limit: int = DEFAULT_BATCH_LIMIT
    report_batch_limit: int = REPORT_BATCH_LIMIT
    board_batch_limit: int = BOARD_BATCH_LIMIT
    timezone: str = DEFAULT_TIMEZONE
    request_timeout: float | None = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> AppSettings:
        """Build settings from a secrets-style mapping, ignoring unknown keys.

        Keys are matched case-insensitively so both ``cache_ttl`` and
        ``CACHE_TTL`` work in ``.streamlit/secrets.toml``.
        """
        settings = cls()
        if not values:
            return settings
        lowered = {str(k).lower(): v for k, v in values.items()}
        for f in fields(cls):
            if f.name not in lowered:
                continue
            raw = lowered[f.name]
            current = getattr(settings, f.name)
            if raw is None or isinstance(current, str):
                setattr(settings, f.name, raw)
            elif isinstance(current, float):
                setattr(settings, f.name, float(raw))
            else:
                setattr(settings, f.name, int(raw))
        return settings


SETTINGS = AppSettings()
