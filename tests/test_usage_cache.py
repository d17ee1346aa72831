from __future__ import annotations

import json
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

import harv.usage.cache as cache_mod
from harv.core.models import Project, UsageScore
from harv.usage.cache import UsageCache, sort_by_usage

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=UTC)


def test_recorded_project_reorders_pick_list(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    projects = [Project(1, "Alpha"), Project(2, "Beta")]

    cache = UsageCache.load(path)
    cache.record_project(2)
    assert cache.save()

    loaded = UsageCache.load(path)
    assert [p.name for p in sort_by_usage(projects, loaded.score_project)] == ["Beta", "Alpha"]
    score = loaded.score_project(2)
    assert score is not None and score.use_count >= 1


def test_record_increments_and_never_moves_backwards(tmp_path: Path, monkeypatch) -> None:
    cache = UsageCache(tmp_path / "usage.json")
    future = datetime.now(UTC) + timedelta(days=1)
    monkeypatch.setattr(cache_mod, "utc_now", lambda: future)
    cache.record_task(5)
    monkeypatch.setattr(cache_mod, "utc_now", lambda: T0)
    cache.record_task(5)
    assert cache.score_task(5) == UsageScore(last_used=future, use_count=2)


def test_sort_by_usage_ordering() -> None:
    a, b, c, d = Project(1, "a"), Project(2, "b"), Project(3, "C"), Project(4, "B")
    scores = {
        1: UsageScore(T0, 10),
        2: UsageScore(T0 + timedelta(hours=1), 1),
    }
    assert sort_by_usage([a, b, c, d], scores.get) == [b, a, d, c]

    scores = {1: UsageScore(T0, 1), 2: UsageScore(T0, 3)}
    assert sort_by_usage([a, b], scores.get) == [b, a]


def test_file_format(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "usage.json"
    cache = UsageCache(path)
    cache.record_project(7)
    cache.record_task(9)
    assert cache.save()

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["version"] == 1
    assert doc["projects"]["7"]["use_count"] == 1
    assert doc["tasks"]["9"]["use_count"] == 1
    assert not path.with_name("usage.json.tmp").exists()
    if os.name == "posix":
        assert path.stat().st_mode & 0o777 == 0o600


def test_failed_rename_keeps_previous_file(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "usage.json"
    first = UsageCache(path)
    first.record_project(1)
    assert first.save()
    before = path.read_text(encoding="utf-8")

    def boom(_src, _dst):
        raise OSError("disk full")

    monkeypatch.setattr(cache_mod.os, "replace", boom)
    second = UsageCache.load(path)
    second.record_project(2)
    assert second.save() is False

    assert path.read_text(encoding="utf-8") == before
    assert not path.with_name("usage.json.tmp").exists()


def test_load_tolerates_bad_files(tmp_path: Path) -> None:
    missing = UsageCache.load(tmp_path / "none.json")
    assert missing.projects == {} and missing.tasks == {}

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert UsageCache.load(bad).projects == {}

    newer = tmp_path / "newer.json"
    newer.write_text(
        json.dumps(
            {"version": 2, "projects": {"1": {"last_used": T0.isoformat(), "use_count": 3}}}
        ),
        encoding="utf-8",
    )
    assert UsageCache.load(newer).projects == {}
