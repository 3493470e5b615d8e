import json
import threading

import pytest
import requests
from jira import JIRAError

from worklog_app.core.errors import ExternalServiceError
from worklog_app.core.jira_client import JiraAPI
from worklog_app.core.models import Credentials


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self.text = text if text is not None else ("" if payload is None else json.dumps(payload))


class FakeSession:
    """Routes requests to a handler and records every call."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self._lock = threading.Lock()

    def request(self, method, url, params=None, data=None, headers=None):
        with self._lock:
            self.calls.append({"method": method, "url": url, "params": params, "data": data})
        result = self.handler(method, url, params or {}, json.loads(data) if data else None)
        if isinstance(result, Exception):
            raise result
        return result


class FakeClient:
    def __init__(self, session):
        self._session = session


class DummyAPI(JiraAPI):
    def __init__(self, handler):
        self.credentials = Credentials("https://example.atlassian.net/", "me@example.com", "secret")
        self.server = self.credentials.server
        self.session = FakeSession(handler)
        self.client = FakeClient(self.session)


def test_urls():
    api = DummyAPI(lambda *a: FakeResponse())
    assert api.api_url("/myself") == "https://example.atlassian.net/rest/api/3/myself"
    assert api.agile_url("/board") == "https://example.atlassian.net/rest/agile/1.0/board"


def test_empty_body_returns_empty_dict():
    api = DummyAPI(lambda *a: FakeResponse(204, text=""))
    assert api.delete_worklog("A-1", "10") == {}


def test_non_json_body_returns_text():
    api = DummyAPI(lambda *a: FakeResponse(200, text="plain ok"))
    assert api.request("GET", api.api_url("/x")) == "plain ok"


def test_non_2xx_raises_with_status_and_body():
    api = DummyAPI(lambda *a: FakeResponse(404, text='{"errorMessages":["Issue does not exist"]}'))
    with pytest.raises(ExternalServiceError) as info:
        api.myself()
    assert info.value.status_code == 404
    assert "Issue does not exist" in info.value.body
    assert str(info.value) == "Jira API error: 404"


def test_jira_error_translated():
    api = DummyAPI(lambda *a: JIRAError(status_code=401, text="Unauthorized"))
    with pytest.raises(ExternalServiceError) as info:
        api.myself()
    assert info.value.status_code == 401


def test_transport_failure_has_status_zero():
    api = DummyAPI(lambda *a: requests.ConnectionError("refused"))
    with pytest.raises(ExternalServiceError) as info:
        api.myself()
    assert info.value.status_code == 0


def test_post_sends_json_body():
    api = DummyAPI(lambda *a: FakeResponse(201, {"id": "1"}))
    assert api.add_worklog("A-1", {"started": "x", "timeSpent": "1h"}) == {"id": "1"}
    call = api.session.calls[0]
    assert call["method"] == "POST"
    assert call["url"].endswith("/rest/api/3/issue/A-1/worklog")
    assert json.loads(call["data"]) == {"started": "x", "timeSpent": "1h"}


def test_offset_pagination_fetches_all_pages_in_order():
    total = 250

    def handler(method, url, params, body):
        start = params["startAt"]
        size = params["maxResults"]
        values = [{"id": i, "name": f"B{i}"} for i in range(start, min(start + size, total))]
        return FakeResponse(200, {"startAt": start, "maxResults": size, "total": total, "values": values})

    api = DummyAPI(handler)
    boards = api.list_boards()
    assert [b["id"] for b in boards] == list(range(total))
    assert len(api.session.calls) == 3
    assert sorted(c["params"]["startAt"] for c in api.session.calls) == [0, 100, 200]


def test_offset_pagination_single_page():
    api = DummyAPI(lambda *a: FakeResponse(200, {"total": 2, "values": [{"key": "A"}, {"key": "B"}]}))
    assert [p["key"] for p in api.list_projects()] == ["A", "B"]
    assert len(api.session.calls) == 1


def test_offset_pagination_without_total_stops_after_first_page():
    api = DummyAPI(lambda *a: FakeResponse(200, {"values": [{"key": "A"}]}))
    assert api.list_projects() == [{"key": "A"}]


def test_token_pagination_follows_next_page_token():
    pages = {
        None: {"issues": [{"key": "A-1"}], "nextPageToken": "t1"},
        "t1": {"issues": [{"key": "A-2"}], "nextPageToken": "t2"},
        "t2": {"issues": [{"key": "A-3"}], "isLast": True},
    }

    def handler(method, url, params, body):
        assert url.endswith("/rest/api/3/search/jql")
        return FakeResponse(200, pages[body.get("nextPageToken")])

    api = DummyAPI(handler)
    issues = api.search_all("project = A", ["key"])
    assert [i["key"] for i in issues] == ["A-1", "A-2", "A-3"]
    assert len(api.session.calls) == 3


def test_token_pagination_stops_when_is_last_even_with_token():
    api = DummyAPI(lambda *a: FakeResponse(200, {"issues": [{"key": "A-1"}], "nextPageToken": "t", "isLast": True}))
    assert len(api.search_all("x", ["key"])) == 1
    assert len(api.session.calls) == 1


def test_issue_worklogs_passes_window_params():
    api = DummyAPI(lambda *a: FakeResponse(200, {"worklogs": [{"id": "1"}]}))
    assert api.issue_worklogs("A-1", started_after=1, started_before=2) == [{"id": "1"}]
    assert api.session.calls[0]["params"] == {"startedAfter": 1, "startedBefore": 2}
    api.all_issue_worklogs("A-1")
    assert api.session.calls[1]["params"] == {"maxResults": 5000}
