from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

MAX_DESCRIPTION_LENGTH = 500


@dataclass(frozen=True)
class Commit:
    message: str
    author: str
    timestamp: int


@dataclass(frozen=True)
class Ticket:
    key: str
    summary: str
    status: str | None = None


@dataclass(frozen=True)
class Project:
    id: int
    name: str
    code: str | None = None

    @classmethod
    def from_api(cls, d: dict[str, Any]) -> Project:
        return cls(id=int(d["id"]), name=str(d["name"]), code=d.get("code") or None)


@dataclass(frozen=True)
class Task:
    id: int
    name: str

    @classmethod
    def from_api(cls, d: dict[str, Any]) -> Task:
        return cls(id=int(d["id"]), name=str(d["name"]))


@dataclass(frozen=True)
class TimeEntry:
    id: int
    spent_date: str
    hours: float | None
    notes: str | None
    is_running: bool
    project: Project | None = None
    task: Task | None = None
    started_time: str | None = None

    @classmethod
    def from_api(cls, d: dict[str, Any]) -> TimeEntry:
        project = d.get("project")
        task = d.get("task")
        hours = d.get("hours")
        return cls(
            id=int(d["id"]),
            spent_date=str(d["spent_date"]),
            hours=float(hours) if hours is not None else None,
            notes=d.get("notes"),
            is_running=bool(d.get("is_running", False)),
            project=Project.from_api(project) if isinstance(project, dict) else None,
            task=Task.from_api(task) if isinstance(task, dict) else None,
            started_time=d.get("started_time"),
        )

    def is_continuable(self) -> bool:
        return not self.is_running and self.project is not None and self.task is not None


@dataclass(frozen=True)
class ExternalReference:
    id: str
    group_id: str
    permalink: str


@dataclass(frozen=True)
class ProposedEntry:
    description: str
    project_id: int
    task_id: int
    hours: float
    confidence: float | None = None

    def dedup_key(self) -> tuple[str, int, int, int]:
        return (self.description, self.project_id, self.task_id, round(self.hours * 100))


@dataclass(frozen=True)
class RunContext:
    dry_run: bool = False
    auto_start: bool = False
    auto_stop: bool = False
    quiet: bool = False
    verbose: bool = False


class EntryType(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"

    @property
    def is_running(self) -> bool:
        return self is EntryType.RUNNING


@dataclass
class UsageRecord:
    last_used: datetime
    use_count: int = 1


@dataclass(frozen=True)
class UsageScore:
    last_used: datetime
    use_count: int


@dataclass(frozen=True)
class GenerateResult:
    created: int
    failed: int
    new_total_hours: float
    entries: list[TimeEntry] = field(default_factory=list)
