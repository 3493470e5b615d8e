"""Jira API client wrapper (REST v3 + Agile 1.0, offset and token pagination)."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any, NoReturn

import requests
from jira import JIRA, JIRAError

from .batch import process_batch
from .config import (
    AGILE_API_PREFIX,
    ERROR_PREVIEW_CHARS,
    MAX_WORKLOGS_PER_ISSUE,
    OFFSET_PAGE_SIZE,
    REST_API_PREFIX,
    SEARCH_PAGE_SIZE,
    SEARCH_PATH,
)
from .errors import ExternalServiceError
from .models import Credentials

logger = logging.getLogger(__name__)

SERVICE_NAME = "Jira API"
JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}


class JiraAPI:
    """One authenticated connection to a Jira Cloud site.

    Uses the session of a ``jira.JIRA`` client (HTTP Basic auth from email and
    API token) for raw REST calls. Retries are disabled: a failed call fails
    the calling operation.
    """

    def __init__(self, credentials: Credentials, *, timeout: float | None = None):
        self.credentials = credentials
        self.server = credentials.server
        self.client = JIRA(
            basic_auth=(credentials.email, credentials.api_token),
            options={"server": self.server, "rest_api_version": "3"},
            get_server_info=False,
            max_retries=0,
            timeout=timeout,
        )

    # ------------------ URLs ------------------
    def api_url(self, path: str) -> str:
        return f"{self.server}{REST_API_PREFIX}{path}"

    def agile_url(self, path: str) -> str:
        return f"{self.server}{AGILE_API_PREFIX}{path}"

    # ------------------ Transport ------------------
    def request(
        self,
        method: str,
        url: str,
        body: Any = None,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send one request; return parsed JSON, raw text, or ``{}`` when empty."""
        session = getattr(self.client, "_session", None)
        if session is None:
            raise RuntimeError("JIRA session unavailable")
        data = json.dumps(body) if body is not None else None
        try:
            resp = session.request(method, url, params=params, data=data, headers=dict(JSON_HEADERS))
        except JIRAError as exc:
            status = exc.status_code or 0
            response = getattr(exc, "response", None)
            text = getattr(response, "text", None) or exc.text or ""
            self._raise_upstream(url, status, text)
        except requests.RequestException as exc:
            logger.warning("Jira request to %s failed: %s", url, exc)
            raise ExternalServiceError(SERVICE_NAME, 0, str(exc)) from exc

        text = resp.text or ""
        if not 200 <= resp.status_code < 300:
            self._raise_upstream(url, resp.status_code, text)
        if not text.strip():
            return {}
        try:
            return json.loads(text)
        except ValueError:
            return text

    def get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("GET", url, params=params)

    def post(self, url: str, body: Any) -> Any:
        return self.request("POST", url, body)

    @staticmethod
    def _raise_upstream(url: str, status: int, text: str) -> NoReturn:
        logger.warning("Jira API error %s at %s: %s", status, url, text[:ERROR_PREVIEW_CHARS])
        raise ExternalServiceError(SERVICE_NAME, status, text)

    @staticmethod
    def _as_dict(data: Any, url: str) -> dict[str, Any]:
        if isinstance(data, dict):
            return data
        logger.warning("Expected JSON object from %s, got %s", url, type(data).__name__)
        return {}

    # ------------------ Pagination ------------------
    def paginate_offset(
        self,
        url: str,
        *,
        values_key: str = "values",
        page_size: int = OFFSET_PAGE_SIZE,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Collect every page of a ``startAt``/``maxResults`` list endpoint.

        The first page reports ``total``; the remaining offsets are requested
        concurrently and concatenated in page order. ``total`` is assumed not
        to change between the first and later requests.
        """

        def fetch_page(start_at: int) -> dict[str, Any]:
            qp = dict(params or {})
            qp.update({"startAt": start_at, "maxResults": page_size})
            return self._as_dict(self.get(url, params=qp), url)

        def fetch(start_at: int) -> list[dict[str, Any]]:
            return list(fetch_page(start_at).get(values_key) or [])

        first = fetch_page(0)
        out = list(first.get(values_key) or [])
        total = first.get("total")
        total = int(total) if total is not None else len(out)
        if len(out) >= total:
            return out
        offsets = list(range(page_size, total, page_size))
        logger.debug("Fetching %s more page(s) from %s (total=%s)", len(offsets), url, total)
        for page in process_batch(offsets, fetch, limit=max(len(offsets), 1)):
            out.extend(page)
        return out

    def search_page(
        self,
        jql: str,
        fields: Sequence[str],
        max_results: int = SEARCH_PAGE_SIZE,
        next_page_token: str | None = None,
    ) -> dict[str, Any]:
        url = self.api_url(SEARCH_PATH)
        body: dict[str, Any] = {"jql": jql, "fields": list(fields), "maxResults": max_results}
        if next_page_token:
            body["nextPageToken"] = next_page_token
        return self._as_dict(self.post(url, body), url)

    def search_all(
        self,
        jql: str,
        fields: Sequence[str],
        *,
        page_size: int = SEARCH_PAGE_SIZE,
    ) -> list[dict[str, Any]]:
        """Run an enhanced search to exhaustion, following ``nextPageToken``.

        Strictly sequential: each request needs the previous page's token.
        """
        out: list[dict[str, Any]] = []
        token = None
        pages = 0
        while True:
            data = self.search_page(jql, fields, page_size, next_page_token=token)
            out.extend(data.get("issues") or [])
            pages += 1
            token = data.get("nextPageToken")
            if not token or data.get("isLast") is True:
                break
        logger.debug("Search returned %s issue(s) in %s page(s): %s", len(out), pages, jql)
        return out

    # ------------------ Endpoints ------------------
    def myself(self) -> dict[str, Any]:
        url = self.api_url("/myself")
        return self._as_dict(self.get(url), url)

    def issue_worklogs(
        self,
        issue_key: str,
        *,
        started_after: int | None = None,
        started_before: int | None = None,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if started_after is not None:
            params["startedAfter"] = started_after
        if started_before is not None:
            params["startedBefore"] = started_before
        if max_results is not None:
            params["maxResults"] = max_results
        url = self.api_url(f"/issue/{issue_key}/worklog")
        data = self._as_dict(self.get(url, params=params or None), url)
        return list(data.get("worklogs") or [])

    def all_issue_worklogs(self, issue_key: str) -> list[dict[str, Any]]:
        return self.issue_worklogs(issue_key, max_results=MAX_WORKLOGS_PER_ISSUE)

    def add_worklog(self, issue_key: str, payload: dict[str, Any]) -> Any:
        return self.request("POST", self.api_url(f"/issue/{issue_key}/worklog"), payload)

    def update_worklog(self, issue_key: str, worklog_id: str, payload: dict[str, Any]) -> Any:
        return self.request("PUT", self.api_url(f"/issue/{issue_key}/worklog/{worklog_id}"), payload)

    def delete_worklog(self, issue_key: str, worklog_id: str) -> Any:
        return self.request("DELETE", self.api_url(f"/issue/{issue_key}/worklog/{worklog_id}"))

    def list_projects(self) -> list[dict[str, Any]]:
        return self.paginate_offset(self.api_url("/project/search"))

    def list_boards(self) -> list[dict[str, Any]]:
        return self.paginate_offset(self.agile_url("/board"))

    def board_configuration(self, board_id: int) -> dict[str, Any]:
        url = self.agile_url(f"/board/{board_id}/configuration")
        return self._as_dict(self.get(url), url)
