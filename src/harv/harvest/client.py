from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from datetime import date
from http import HTTPStatus
from typing import Any

import requests

from harv.core.config import HarvestConfig
from harv.core.errors import HarvError, HarvestApiError, TransportError
from harv.core.models import ExternalReference, Project, RunContext, Task, TimeEntry

logger = logging.getLogger(__name__)

BASE_URL = "https://api.harvestapp.com/v2"
TIMEOUT_S = 30


def today_iso() -> str:
    return date.today().isoformat()


# Python 3.13 reports 422 as "Unprocessable Content".
_PHRASES = {422: "Unprocessable Entity"}


def _status_line(resp: requests.Response) -> str:
    phrase = _PHRASES.get(resp.status_code)
    if phrase is None:
        try:
            phrase = HTTPStatus(resp.status_code).phrase
        except ValueError:
            phrase = resp.reason or ""
    return f"{resp.status_code} {phrase}".strip()


def _active_tasks(task_assignments: list[dict[str, Any]]) -> list[Task]:
    return [Task.from_api(ta["task"]) for ta in task_assignments if ta.get("is_active")]


@contextmanager
def _parsing(what: str) -> Iterator[None]:
    """Report a 2xx body that does not have the expected shape as HarvestApiError."""
    try:
        yield
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise HarvestApiError(f"Failed to parse response ({what}): {e!r}") from e


class HarvestClient:
    """Harvest v2 API client.

    Mutating calls honour `ctx.dry_run` by returning a synthesized entry
    (id 0) without touching the network.
    """

    def __init__(self, config: HarvestConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self.base_url = BASE_URL
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {config.access_token}",
                "Harvest-Account-Id": config.account_id,
                "User-Agent": config.user_agent,
                "Content-Type": "application/json",
            }
        )

    # -- transport -----------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        what: str,
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}/{path}"
        logger.debug("%s %s params=%s", method, url, params or {})
        if payload is not None:
            logger.debug("request body: %s", payload)
        try:
            resp = self.session.request(
                method, url, params=params, json=payload, timeout=TIMEOUT_S
            )
        except requests.RequestException as e:
            raise TransportError(f"Harvest request failed ({what}): {e}") from e

        if resp.status_code >= 300:
            raise HarvestApiError(
                f"Failed to {what} ({_status_line(resp)}): {resp.text}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise HarvestApiError(f"Failed to parse response ({what}): {e}") from e

    def _get_paged(
        self, path: str, key: str, what: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page: int | None = 1
        while page is not None:
            data = self._request("GET", path, what, params={**(params or {}), "page": page})
            if not isinstance(data, dict) or not isinstance(data.get(key), list):
                raise HarvestApiError(f"Unexpected response ({what}): missing '{key}'")
            items.extend(data[key])
            nxt = data.get("next_page")
            page = int(nxt) if nxt else None
        return items

    # -- time entries --------------------------------------------------

    def list_entries(self, from_date: str, to_date: str) -> list[TimeEntry]:
        raw = self._get_paged(
            "time_entries",
            "time_entries",
            "fetch time entries",
            params={"from": from_date, "to": to_date},
        )
        with _parsing("fetch time entries"):
            entries = [TimeEntry.from_api(d) for d in raw]
        logger.debug("retrieved %d time entries for %s..%s", len(entries), from_date, to_date)
        return entries

    def todays_entries(self) -> list[TimeEntry]:
        today = today_iso()
        return self.list_entries(today, today)

    def total_hours_for_date(self, spent_date: str) -> float:
        return sum(e.hours or 0.0 for e in self.list_entries(spent_date, spent_date))

    def total_hours_today(self) -> float:
        return self.total_hours_for_date(today_iso())

    def running_timer(self) -> TimeEntry | None:
        return next((e for e in self.todays_entries() if e.is_running), None)

    def create_running(
        self,
        project_id: int | None,
        task_id: int | None,
        spent_date: str,
        notes: str,
        ctx: RunContext,
        external_reference: ExternalReference | None = None,
    ) -> TimeEntry:
        payload: dict[str, Any] = {"spent_date": spent_date, "notes": notes}
        # Harvest picks the user's default project/task when these are omitted.
        if project_id is not None:
            payload["project_id"] = project_id
        if task_id is not None:
            payload["task_id"] = task_id
        if external_reference is not None:
            payload["external_reference"] = asdict(external_reference)

        if ctx.dry_run:
            logger.info("[DRY RUN] would start timer: %s", payload)
            return TimeEntry(
                id=0,
                spent_date=spent_date,
                hours=None,
                notes=notes,
                is_running=True,
            )

        data = self._request("POST", "time_entries", "create time entry", payload=payload)
        with _parsing("create time entry"):
            entry = TimeEntry.from_api(data)
        logger.info("created time entry: %s", notes)
        return entry

    def create_stopped(
        self,
        project_id: int,
        task_id: int,
        spent_date: str,
        notes: str,
        hours: float,
        ctx: RunContext,
    ) -> TimeEntry:
        payload: dict[str, Any] = {
            "project_id": project_id,
            "task_id": task_id,
            "spent_date": spent_date,
            "notes": notes,
            "hours": hours,
        }

        if ctx.dry_run:
            logger.info("[DRY RUN] would create stopped entry: %s", payload)
            return TimeEntry(
                id=0,
                spent_date=spent_date,
                hours=hours,
                notes=notes,
                is_running=False,
            )

        data = self._request("POST", "time_entries", "create time entry", payload=payload)
        with _parsing("create time entry"):
            entry = TimeEntry.from_api(data)
        logger.info("created time entry: %s (%.2fh) on %s", notes, hours, spent_date)
        return entry

    def stop(self, entry_id: int, ctx: RunContext) -> TimeEntry:
        if ctx.dry_run:
            logger.info("[DRY RUN] would stop time entry %s", entry_id)
            return TimeEntry(id=0, spent_date=today_iso(), hours=None, notes=None, is_running=False)

        data = self._request("PATCH", f"time_entries/{entry_id}/stop", "stop time entry")
        logger.info("stopped time entry %s", entry_id)
        with _parsing("stop time entry"):
            return TimeEntry.from_api(data)

    def restart(self, entry_id: int, ctx: RunContext) -> TimeEntry:
        if ctx.dry_run:
            logger.info("[DRY RUN] would restart time entry %s", entry_id)
            return TimeEntry(id=0, spent_date=today_iso(), hours=None, notes=None, is_running=True)

        data = self._request("PATCH", f"time_entries/{entry_id}/restart", "restart time entry")
        logger.info("restarted time entry %s", entry_id)
        with _parsing("restart time entry"):
            return TimeEntry.from_api(data)

    # -- projects and tasks --------------------------------------------

    def _user_assignments(self) -> list[tuple[Project, list[Task]]]:
        """Active project assignments with their active tasks (user-scoped tokens)."""
        raw = self._get_paged(
            "users/me/project_assignments",
            "project_assignments",
            "fetch user project assignments",
        )
        out: list[tuple[Project, list[Task]]] = []
        with _parsing("fetch user project assignments"):
            for pa in raw:
                if not pa.get("is_active"):
                    continue
                tasks = _active_tasks(pa.get("task_assignments", []))
                out.append((Project.from_api(pa["project"]), tasks))
        return out

    def _active_projects_raw(self) -> list[dict[str, Any]]:
        return self._get_paged(
            "projects", "projects", "fetch projects", params={"is_active": "true"}
        )

    def list_projects(self) -> list[Project]:
        try:
            raw = self._active_projects_raw()
        except HarvestApiError as e:
            if e.status_code != 403:
                raise
            logger.warning(
                "access denied to /v2/projects; falling back to user project assignments"
            )
            projects = [p for p, _ in self._user_assignments()]
            logger.debug("retrieved %d project(s) via user assignments", len(projects))
            return projects

        with _parsing("fetch projects"):
            projects = [Project.from_api(d) for d in raw]
        logger.debug("retrieved %d project(s)", len(projects))
        return projects

    def list_project_tasks(self, project_id: int) -> list[Task]:
        try:
            raw = self._get_paged(
                f"projects/{project_id}/task_assignments",
                "task_assignments",
                "fetch tasks",
            )
        except HarvestApiError as e:
            if e.status_code != 403:
                raise
            logger.warning(
                "access denied to task assignments of project %s; trying user assignments",
                project_id,
            )
            for project, tasks in self._user_assignments():
                if project.id == project_id:
                    return tasks
            raise HarvestApiError(
                f"Project {project_id} not found in user assignments or not accessible"
            ) from e

        with _parsing("fetch tasks"):
            tasks = _active_tasks(raw)
        logger.debug("retrieved %d task(s) for project %s", len(tasks), project_id)
        return tasks

    def list_all_project_tasks(self) -> list[tuple[int, Task]]:
        try:
            raw = self._active_projects_raw()
        except HarvestApiError as e:
            if e.status_code != 403:
                raise
            logger.debug("access denied to /v2/projects; using user assignments")
            return [(p.id, t) for p, tasks in self._user_assignments() for t in tasks]

        out: list[tuple[int, Task]] = []
        with _parsing("fetch projects"):
            pids = [int(d["id"]) for d in raw]
        for pid in pids:
            try:
                tasks = self.list_project_tasks(pid)
            except HarvError as e:
                logger.warning("failed to fetch tasks for project %s: %s", pid, e)
                continue
            out.extend((pid, t) for t in tasks)
        logger.debug("retrieved %d task assignment(s)", len(out))
        return out
