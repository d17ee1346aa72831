from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from harv import prompt
from harv.core.config import Config
from harv.core.models import ExternalReference, RunContext, TimeEntry
from harv.git.commits import commits_from_repositories, discover_repositories
from harv.git.tickets import extract_tickets, notes_reference_ticket
from harv.harvest.client import HarvestClient
from harv.jira.client import JiraClient

logger = logging.getLogger(__name__)

JIRA_GROUP_ID = "jira"


def run(
    config: Config,
    ctx: RunContext,
    repo: str | Path | None = None,
    *,
    harvest: HarvestClient | None = None,
    jira: JiraClient | None = None,
    today: date | None = None,
) -> TimeEntry | None:
    """Start a Harvest timer for the Jira ticket referenced by today's commits.

    Returns the started entry, or None when nothing was written.
    """
    auto_start = ctx.auto_start or config.settings.auto_start
    auto_stop = ctx.auto_stop or config.settings.auto_stop

    if repo is not None:
        repos = [Path(repo).expanduser()]
    else:
        repos = discover_repositories(config.git.repositories)
    logger.info("checking %d repository(ies)", len(repos))

    commits = commits_from_repositories(repos)
    if not commits:
        prompt.display_info("No commits found from today", quiet=ctx.quiet)
        return None

    keys = extract_tickets([c.message for c in commits], config.ticket_filter.denylist)
    if not keys:
        prompt.display_info("No Jira tickets found in today's commits", quiet=ctx.quiet)
        return None
    logger.info("found %d Jira ticket(s): %s", len(keys), ", ".join(keys))

    jira = jira or JiraClient(config.jira)
    harvest = harvest or HarvestClient(config.harvest)

    tickets = jira.get_issues(keys)
    if len(tickets) == 1 and (config.settings.auto_select_single or auto_start):
        ticket = tickets[0]
    else:
        ticket = prompt.select_ticket(tickets)
    logger.info("selected ticket: %s - %s", ticket.key, ticket.summary)

    timer = harvest.running_timer()
    if timer is not None:
        if timer.notes and notes_reference_ticket(timer.notes, ticket.key):
            prompt.display_info(f"Timer already running for {ticket.key}", quiet=ctx.quiet)
            return None

        if not (auto_stop or prompt.confirm_stop_timer(timer, ticket.key)):
            prompt.display_info("Keeping current timer running", quiet=ctx.quiet)
            return None

        harvest.stop(timer.id, ctx)
        prompt.display_success("Stopped previous timer", quiet=ctx.quiet)

    entry = harvest.create_running(
        config.harvest.project_id,
        config.harvest.task_id,
        (today or date.today()).isoformat(),
        f"{ticket.key} - {ticket.summary}",
        ctx,
        external_reference=ExternalReference(
            id=ticket.key,
            group_id=JIRA_GROUP_ID,
            permalink=jira.ticket_url(ticket.key),
        ),
    )
    prompt.display_success(f"Started timer for {ticket.key} - {ticket.summary}", quiet=ctx.quiet)
    return entry
