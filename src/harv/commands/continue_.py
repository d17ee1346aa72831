from __future__ import annotations

import logging
from datetime import date, timedelta

from harv import prompt
from harv.core.config import Config
from harv.core.models import RunContext, TimeEntry
from harv.harvest.client import HarvestClient

logger = logging.getLogger(__name__)

DEFAULT_MODE = "new"


def run(
    config: Config,
    ctx: RunContext,
    days: int | None = None,
    *,
    harvest: HarvestClient | None = None,
    today: date | None = None,
) -> TimeEntry | None:
    """Resume a recent stopped entry as the running timer."""
    harvest = harvest or HarvestClient(config.harvest)
    today = today or date.today()
    auto_start = ctx.auto_start or config.settings.auto_start

    lookback = days or config.settings.continue_days or 1
    from_date = (today - timedelta(days=lookback - 1)).isoformat()
    to_date = today.isoformat()

    if lookback == 1:
        prompt.display_info("Fetching today's time entries...", quiet=ctx.quiet)
    else:
        prompt.display_info(f"Fetching entries from last {lookback} days...", quiet=ctx.quiet)

    entries = [e for e in harvest.list_entries(from_date, to_date) if e.is_continuable()]
    if not entries:
        if lookback == 1:
            msg = "No stopped time entries found today"
        else:
            msg = f"No stopped time entries found in last {lookback} days"
        prompt.display_info(msg, quiet=ctx.quiet)
        return None
    logger.info("found %d entries to continue", len(entries))

    selected = prompt.select_entry(entries, to_date)
    notes = selected.notes or "(no description)"
    assert selected.project is not None and selected.task is not None
    logger.info("selected entry: %s - %s", selected.project.name, notes)

    timer = harvest.running_timer()
    if timer is not None:
        if timer.notes is not None and timer.notes == selected.notes:
            prompt.display_info(f"Timer already running for this task: {notes}", quiet=ctx.quiet)
            return None

        if not (auto_start or prompt.confirm_stop_timer(timer, notes)):
            prompt.display_info("Keeping current timer running", quiet=ctx.quiet)
            return None

        harvest.stop(timer.id, ctx)
        prompt.display_success("Stopped previous timer", quiet=ctx.quiet)

    mode = config.settings.continue_mode or DEFAULT_MODE
    if mode == "ask":
        mode = DEFAULT_MODE if auto_start else prompt.continue_mode()

    if mode == "restart":
        entry = harvest.restart(selected.id, ctx)
    else:
        entry = harvest.create_running(
            selected.project.id, selected.task.id, to_date, selected.notes or "", ctx
        )

    prompt.display_success(
        f"Started timer: {selected.project.name} > {selected.task.name} - {notes}",
        quiet=ctx.quiet,
    )
    return entry
