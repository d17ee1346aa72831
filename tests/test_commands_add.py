from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from conftest import FakeSession, Resp, entry_json, page

import harv.commands.add as add
from harv.core.models import EntryType, RunContext
from harv.harvest.client import HarvestClient
from harv.usage.cache import UsageCache

DAY = date(2026, 1, 2)


def _session(running: list[dict] | None = None) -> FakeSession:
    return FakeSession(
        {
            ("GET", "/v2/projects"): page(
                "projects", [{"id": 1, "name": "Alpha"}, {"id": 2, "name": "Beta"}]
            ),
            ("GET", "/task_assignments"): page(
                "task_assignments",
                [
                    {"is_active": True, "task": {"id": 20, "name": "Design"}},
                    {"is_active": True, "task": {"id": 21, "name": "Build"}},
                ],
            ),
            ("GET", "/v2/time_entries"): lambda _c: page("time_entries", running or []),
            ("POST", "/v2/time_entries"): Resp(201, entry_json(50)),
            ("PATCH", "/stop"): Resp(200, entry_json(5)),
        }
    )


@pytest.fixture
def answers(monkeypatch):
    seen: dict[str, list[str]] = {}

    def setup(kind: EntryType, confirm: bool = True, stop_running: bool = True) -> dict:
        monkeypatch.setattr(add.prompt, "entry_type", lambda: kind)
        monkeypatch.setattr(add.prompt, "entry_date", lambda today: "2026-01-01")

        def pick_project(projects):
            seen["projects"] = [p.name for p in projects]
            return projects[0]

        def pick_task(tasks):
            seen["tasks"] = [t.name for t in tasks]
            return tasks[0]

        monkeypatch.setattr(add.prompt, "select_project", pick_project)
        monkeypatch.setattr(add.prompt, "select_task", pick_task)
        monkeypatch.setattr(add.prompt, "description", lambda: "Pairing")
        monkeypatch.setattr(add.prompt, "hours", lambda: 1.5)
        monkeypatch.setattr(add.prompt, "confirm_entry_creation", lambda *_a: confirm)
        monkeypatch.setattr(add.prompt, "confirm_stop_timer_for_new", lambda _t: stop_running)
        return seen

    return setup


def test_add_stopped_entry_uses_and_records_usage(config, answers, tmp_path: Path) -> None:
    usage_path = tmp_path / "usage.json"
    usage = UsageCache(usage_path)
    usage.record_project(2)
    usage.record_task(21)
    seen = answers(EntryType.STOPPED)
    session = _session()

    entry = add.run(
        config,
        RunContext(),
        harvest=HarvestClient(config.harvest, session=session),
        usage=usage,
        today=DAY,
    )

    assert entry is not None and entry.id == 50
    assert seen["projects"] == ["Beta", "Alpha"]
    assert seen["tasks"] == ["Build", "Design"]
    assert session.writes[0]["json"] == {
        "project_id": 2,
        "task_id": 21,
        "spent_date": "2026-01-01",
        "notes": "Pairing",
        "hours": 1.5,
    }
    reloaded = UsageCache.load(usage_path)
    assert reloaded.score_project(2).use_count == 2
    assert reloaded.score_task(21).use_count == 2


def test_add_running_entry_stops_existing_timer(config, answers, tmp_path: Path) -> None:
    answers(EntryType.RUNNING)
    running = [entry_json(5, "Old", running=True)]
    session = _session(running)

    add.run(
        config,
        RunContext(),
        harvest=HarvestClient(config.harvest, session=session),
        usage=UsageCache(tmp_path / "usage.json"),
        today=DAY,
    )

    assert [c["method"] for c in session.writes] == ["PATCH", "POST"]
    assert session.writes[0]["url"].endswith("/time_entries/5/stop")
    created = session.writes[1]["json"]
    assert (created["project_id"], created["task_id"]) == (1, 21)
    assert "hours" not in created


def test_add_cancelled_or_declined_writes_nothing(config, answers, tmp_path: Path) -> None:
    usage = UsageCache(tmp_path / "usage.json")

    answers(EntryType.STOPPED, confirm=False)
    session = _session()
    harvest = HarvestClient(config.harvest, session=session)
    assert add.run(config, RunContext(), harvest=harvest, usage=usage, today=DAY) is None

    answers(EntryType.RUNNING, stop_running=False)
    session = _session([entry_json(5, "Old", running=True)])
    harvest = HarvestClient(config.harvest, session=session)
    assert add.run(config, RunContext(), harvest=harvest, usage=usage, today=DAY) is None

    assert session.writes == []
    assert usage.projects == {}


def test_add_dry_run_skips_writes_and_usage(config, answers, tmp_path: Path) -> None:
    answers(EntryType.STOPPED)
    session = _session()
    usage_path = tmp_path / "usage.json"

    entry = add.run(
        config,
        RunContext(dry_run=True),
        harvest=HarvestClient(config.harvest, session=session),
        usage=UsageCache(usage_path),
        today=DAY,
    )

    assert entry is not None and entry.id == 0
    assert session.writes == []
    assert not usage_path.exists()
