from __future__ import annotations

from harv import prompt
from harv.core.config import Config
from harv.core.models import RunContext, TimeEntry
from harv.harvest.client import HarvestClient


def run(
    config: Config, ctx: RunContext, *, harvest: HarvestClient | None = None
) -> TimeEntry | None:
    harvest = harvest or HarvestClient(config.harvest)

    timer = harvest.running_timer()
    if timer is None:
        prompt.display_info("No timer currently running", quiet=ctx.quiet)
        return None

    stopped = harvest.stop(timer.id, ctx)
    prompt.display_success("Timer stopped", quiet=ctx.quiet)
    return stopped
