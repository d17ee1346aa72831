from __future__ import annotations

import logging
from datetime import date

import typer

from harv import prompt
from harv.core.config import Config
from harv.core.models import RunContext, TimeEntry
from harv.harvest.client import HarvestClient
from harv.usage.cache import UsageCache, sort_by_usage

logger = logging.getLogger(__name__)


def run(
    config: Config,
    ctx: RunContext,
    *,
    harvest: HarvestClient | None = None,
    usage: UsageCache | None = None,
    today: date | None = None,
) -> TimeEntry | None:
    """Interactively create a running or stopped entry.

    Project and task pick-lists are ordered by past usage; usage is only
    recorded once an entry was really created.
    """
    harvest = harvest or HarvestClient(config.harvest)
    usage = usage if usage is not None else UsageCache.load()
    today = today or date.today()

    kind = prompt.entry_type()
    spent_date = prompt.entry_date(today)

    prompt.display_info("Fetching available projects...", quiet=ctx.quiet)
    projects = sort_by_usage(harvest.list_projects(), usage.score_project)
    project = prompt.select_project(projects)

    prompt.display_info("Fetching tasks...", quiet=ctx.quiet)
    tasks = sort_by_usage(harvest.list_project_tasks(project.id), usage.score_task)
    task = prompt.select_task(tasks)

    notes = prompt.description()
    hours = None if kind.is_running else prompt.hours()

    if not prompt.confirm_entry_creation(kind, spent_date, project.name, task.name, notes, hours):
        prompt.display_info("Entry creation cancelled", quiet=ctx.quiet)
        return None

    if kind.is_running:
        timer = harvest.running_timer()
        if timer is not None:
            if not prompt.confirm_stop_timer_for_new(timer):
                prompt.display_info("Keeping current timer running", quiet=ctx.quiet)
                return None
            harvest.stop(timer.id, ctx)
            prompt.display_success("Stopped previous timer", quiet=ctx.quiet)

        entry = harvest.create_running(project.id, task.id, spent_date, notes, ctx)
        prompt.display_success(f"Started timer: {project.name} - {notes}", quiet=ctx.quiet)
    else:
        assert hours is not None
        entry = harvest.create_stopped(project.id, task.id, spent_date, notes, hours, ctx)
        prompt.display_success(
            f"Created entry: {notes} ({hours:.2f}h) on {spent_date}", quiet=ctx.quiet
        )

    if not ctx.dry_run:
        usage.record_project(project.id)
        usage.record_task(task.id)
        usage.save()

    if not ctx.quiet:
        total = harvest.total_hours_for_date(spent_date)
        typer.echo(f"\nTotal time on {spent_date}: {total:.2f} hours")
    return entry
