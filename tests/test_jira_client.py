from __future__ import annotations

import pytest
import requests
from conftest import FakeSession, Resp

from harv.core.errors import JiraApiError, TransportError
from harv.core.models import Ticket
from harv.jira.client import JiraClient

ISSUE = {"key": "ABC-1", "fields": {"summary": "Fix login", "status": {"name": "In Progress"}}}


def test_get_issue(config) -> None:
    session = FakeSession({("GET", "/rest/api/3/issue/ABC-1"): Resp(200, ISSUE)})
    client = JiraClient(config.jira, session=session)

    assert client.get_issue("ABC-1") == Ticket("ABC-1", "Fix login", "In Progress")
    assert session.headers["Authorization"] == "Bearer jira-token-abcdef"
    assert session.calls[0]["url"] == "https://jira.example.com/rest/api/3/issue/ABC-1"
    assert session.calls[0]["timeout"] == 30


@pytest.mark.parametrize(
    ("status", "message"),
    [
        (404, "Ticket ABC-1 not found"),
        (401, "Authentication failed"),
        (403, "Access denied"),
        (500, "status 500"),
    ],
)
def test_get_issue_errors(config, status: int, message: str) -> None:
    session = FakeSession({("GET", "/issue/ABC-1"): Resp(status, text="boom")})
    with pytest.raises(JiraApiError, match=message) as exc:
        JiraClient(config.jira, session=session).get_issue("ABC-1")
    assert exc.value.status_code == status


def test_transport_failure(config) -> None:
    def fail(_call):
        raise requests.ConnectionError("refused")

    session = FakeSession({("GET", "/issue/ABC-1"): fail})
    with pytest.raises(TransportError):
        JiraClient(config.jira, session=session).get_issue("ABC-1")


def test_get_issues_uses_placeholders(config) -> None:
    session = FakeSession(
        {
            ("GET", "/issue/ABC-1"): Resp(200, ISSUE),
            ("GET", "/issue/ABC-2"): Resp(200, {"key": "ABC-2"}),
        }
    )
    tickets = JiraClient(config.jira, session=session).get_issues(["ABC-1", "ABC-2", "ABC-3"])

    assert [t.key for t in tickets] == ["ABC-1", "ABC-2", "ABC-3"]
    assert tickets[0].summary == "Fix login"
    assert tickets[1].summary.startswith("(Failed to fetch: ")
    assert "not found" in tickets[2].summary
    assert tickets[2].status is None


def test_ticket_url_strips_trailing_slash(config) -> None:
    assert JiraClient(config.jira, session=FakeSession()).ticket_url("ABC-1") == (
        "https://jira.example.com/browse/ABC-1"
    )
