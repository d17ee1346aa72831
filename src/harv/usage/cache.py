from __future__ import annotations

import contextlib
import json
import logging
import os
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, TypeVar

from harv.core.models import UsageRecord, UsageScore
from harv.core.paths import default_usage_path

logger = logging.getLogger(__name__)

USAGE_FILE_VERSION = 1


class _Named(Protocol):
    @property
    def id(self) -> int: ...

    @property
    def name(self) -> str: ...


T = TypeVar("T", bound=_Named)


def utc_now() -> datetime:
    return datetime.now(UTC)


def _records_from_json(raw: Any) -> dict[int, UsageRecord]:
    if not isinstance(raw, dict):
        raise ValueError("expected an object of usage records")
    out: dict[int, UsageRecord] = {}
    for k, v in raw.items():
        if not isinstance(v, dict):
            raise ValueError(f"usage record {k!r} must be an object")
        last_used = datetime.fromisoformat(str(v["last_used"]))
        if last_used.tzinfo is None:
            last_used = last_used.replace(tzinfo=UTC)
        out[int(k)] = UsageRecord(last_used=last_used, use_count=int(v["use_count"]))
    return out


def _records_to_json(records: dict[int, UsageRecord]) -> dict[str, Any]:
    return {
        str(k): {"last_used": r.last_used.isoformat(), "use_count": r.use_count}
        for k, r in sorted(records.items())
    }


class UsageCache:
    """Recency/frequency record of picked projects and tasks.

    Advisory only: loading and saving never raise.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        projects: dict[int, UsageRecord] | None = None,
        tasks: dict[int, UsageRecord] | None = None,
    ) -> None:
        self.path = path or default_usage_path()
        self.projects: dict[int, UsageRecord] = projects or {}
        self.tasks: dict[int, UsageRecord] = tasks or {}

    @classmethod
    def load(cls, path: Path | None = None) -> UsageCache:
        path = path or default_usage_path()
        try:
            obj = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(obj, dict):
                raise ValueError("usage cache must be a JSON object")
            version = int(obj.get("version", 0))
            if version > USAGE_FILE_VERSION:
                raise ValueError(
                    f"usage cache version {version} is newer than supported "
                    f"version {USAGE_FILE_VERSION}"
                )
            cache = cls(
                path,
                projects=_records_from_json(obj.get("projects", {})),
                tasks=_records_from_json(obj.get("tasks", {})),
            )
        except FileNotFoundError:
            logger.debug("no usage cache at %s, starting fresh", path)
            return cls(path)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("failed to load usage cache: %s. Starting fresh.", e)
            return cls(path)

        logger.debug(
            "loaded usage cache with %d project(s), %d task(s)",
            len(cache.projects),
            len(cache.tasks),
        )
        return cache

    def to_jsonable(self) -> dict[str, Any]:
        return {
            "version": USAGE_FILE_VERSION,
            "projects": _records_to_json(self.projects),
            "tasks": _records_to_json(self.tasks),
        }

    def save(self) -> bool:
        """Atomically replace the cache file. Returns False (and logs) on failure."""
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(self.to_jsonable(), ensure_ascii=False, indent=2) + "\n",
                encoding="utf-8",
            )
            if os.name == "posix":
                os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.warning("failed to save usage cache: %s. Usage tracking will not persist.", e)
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            return False

        logger.debug("saved usage cache to %s", self.path)
        return True

    @staticmethod
    def _record(records: dict[int, UsageRecord], key: int) -> None:
        now = utc_now()
        rec = records.get(key)
        if rec is None:
            records[key] = UsageRecord(last_used=now, use_count=1)
            return
        rec.last_used = max(rec.last_used, now)
        rec.use_count += 1

    def record_project(self, project_id: int) -> None:
        self._record(self.projects, project_id)
        logger.debug("recorded project usage: %s", project_id)

    def record_task(self, task_id: int) -> None:
        self._record(self.tasks, task_id)
        logger.debug("recorded task usage: %s", task_id)

    def score_project(self, project_id: int) -> UsageScore | None:
        rec = self.projects.get(project_id)
        return UsageScore(rec.last_used, rec.use_count) if rec else None

    def score_task(self, task_id: int) -> UsageScore | None:
        rec = self.tasks.get(task_id)
        return UsageScore(rec.last_used, rec.use_count) if rec else None


def sort_by_usage(items: Iterable[T], score_fn: Callable[[int], UsageScore | None]) -> list[T]:
    """Most recently (then most often) used first; unused items by name.

    `score_fn` is looked up by item id, e.g. `cache.score_project`.
    """
    scored: list[tuple[UsageScore, T]] = []
    unscored: list[T] = []
    for item in items:
        s = score_fn(item.id)
        if s is None:
            unscored.append(item)
        else:
            scored.append((s, item))

    scored.sort(key=lambda p: (p[0].last_used, p[0].use_count), reverse=True)
    unscored.sort(key=lambda i: i.name)
    return [item for _, item in scored] + unscored
