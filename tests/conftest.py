from __future__ import annotations

from typing import Any

import pytest

from harv.core.config import Config, HarvestConfig, JiraConfig

WRITE_METHODS = {"POST", "PATCH", "PUT", "DELETE"}


class Resp:
    def __init__(
        self, status_code: int = 200, payload: Any = None, text: str | None = None
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else repr(payload))
        self.reason = ""

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeSession:
    """Records every request; answers from `routes`.

    Routes map `(METHOD, path-suffix)` to a Resp, a list of Resps (served in
    order) or a callable taking the call dict.
    """

    def __init__(self, routes: dict[tuple[str, str], Any] | None = None) -> None:
        self.routes = dict(routes or {})
        self.headers: dict[str, str] = {}
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kw: Any) -> Resp:
        call = {"method": method, "url": url, **kw}
        self.calls.append(call)
        path = url.split("?", 1)[0]
        for (m, suffix), answer in self.routes.items():
            if m == method and path.endswith(suffix):
                if callable(answer):
                    return answer(call)
                if isinstance(answer, list):
                    return answer.pop(0)
                return answer
        return Resp(404, text=f"no route for {method} {path}")

    def get(self, url: str, **kw: Any) -> Resp:
        return self.request("GET", url, **kw)

    def post(self, url: str, **kw: Any) -> Resp:
        return self.request("POST", url, **kw)

    def patch(self, url: str, **kw: Any) -> Resp:
        return self.request("PATCH", url, **kw)

    @property
    def writes(self) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["method"] in WRITE_METHODS]


def entry_json(
    id: int,
    notes: str | None = "work",
    *,
    hours: float | None = 1.0,
    running: bool = False,
    project: tuple[int, str] | None = (7, "Proj"),
    task: tuple[int, str] | None = (9, "Dev"),
    spent_date: str = "2026-01-02",
) -> dict[str, Any]:
    return {
        "id": id,
        "spent_date": spent_date,
        "hours": hours,
        "notes": notes,
        "is_running": running,
        "project": {"id": project[0], "name": project[1]} if project else None,
        "task": {"id": task[0], "name": task[1]} if task else None,
    }


def page(key: str, items: list[dict[str, Any]], next_page: int | None = None) -> Resp:
    return Resp(200, {key: items, "next_page": next_page})


@pytest.fixture
def config() -> Config:
    return Config(
        harvest=HarvestConfig(
            access_token="hv-token-123456", account_id="42", user_agent="harv tests"
        ),
        jira=JiraConfig(access_token="jira-token-abcdef", base_url="https://jira.example.com/"),
    )
