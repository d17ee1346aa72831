from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date

import typer

from harv import prompt
from harv.ai.prompt import AiContext
from harv.ai.providers import AiProvider, create_provider
from harv.core.config import Config
from harv.core.errors import ConfigError, HarvError, HarvestApiError
from harv.core.models import GenerateResult, ProposedEntry, RunContext, TimeEntry
from harv.core.timeparse import parse_hours
from harv.harvest.client import HarvestClient

logger = logging.getLogger(__name__)

UNPROCESSABLE = "422 Unprocessable Entity"


def dedupe(entries: list[ProposedEntry]) -> list[ProposedEntry]:
    seen: set[tuple[str, int, int, int]] = set()
    out: list[ProposedEntry] = []
    for e in entries:
        key = e.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        out.append(e)
    return out


def fallback_assignment(entries: list[TimeEntry]) -> tuple[int, int] | None:
    """(project_id, task_id) of the most recent entry that has both."""
    for e in entries:
        if e.project is not None and e.task is not None:
            return e.project.id, e.task.id
    return None


def _is_unprocessable(e: HarvError) -> bool:
    if isinstance(e, HarvestApiError) and e.status_code == 422:
        return True
    return UNPROCESSABLE in str(e)


def _create(
    harvest: HarvestClient,
    entry: ProposedEntry,
    spent_date: str,
    fallback: tuple[int, int] | None,
    ctx: RunContext,
) -> TimeEntry | None:
    try:
        created = harvest.create_stopped(
            entry.project_id, entry.task_id, spent_date, entry.description, entry.hours, ctx
        )
    except HarvError as e:
        if not _is_unprocessable(e) or fallback is None:
            prompt.display_warning(f"Failed to create entry '{entry.description}': {e}")
            return None
        prompt.display_warning(
            f"Invalid project/task for '{entry.description}'. "
            "Retrying with most recent project/task...",
            quiet=ctx.quiet,
        )
        try:
            created = harvest.create_stopped(
                fallback[0], fallback[1], spent_date, entry.description, entry.hours, ctx
            )
        except HarvError as retry_error:
            prompt.display_warning(
                f"Failed to create entry '{entry.description}' even with fallback: {retry_error}"
            )
            return None
        if ctx.verbose:
            prompt.display_success(
                f"Created with fallback: {entry.description} ({entry.hours:.2f}h)"
            )
        return created

    if ctx.verbose:
        prompt.display_success(f"Created: {entry.description} ({entry.hours:.2f}h)")
    return created


def run(
    config: Config,
    ctx: RunContext,
    summary: str | None = None,
    provider_name: str | None = None,
    auto_approve: bool = False,
    target_hours: str | None = None,
    *,
    harvest: HarvestClient | None = None,
    provider: AiProvider | None = None,
) -> GenerateResult:
    """Turn a free-text work summary into stopped entries for today."""
    if not config.ai.enabled:
        raise ConfigError(
            "AI generation is not enabled. Set 'ai.enabled = true' in your config file."
        )

    ai = config.ai
    if provider_name:
        ai = replace(ai, provider=provider_name)
    if target_hours is not None:
        ai = replace(ai, target_hours=parse_hours(target_hours))

    work_summary = summary if summary is not None else prompt.work_summary()
    if not work_summary.strip():
        raise ConfigError("Work summary cannot be empty")

    harvest = harvest or HarvestClient(config.harvest)
    provider = provider or create_provider(ai)

    prompt.display_info("Fetching Harvest data...", quiet=ctx.quiet)
    projects = harvest.list_projects()
    existing = harvest.todays_entries()
    today_total = harvest.total_hours_today()
    tasks = [t for _, t in harvest.list_all_project_tasks()]

    context = AiContext(
        available_projects=projects,
        available_tasks=tasks,
        existing_entries=existing,
        target_hours=ai.target_hours,
        today_total_hours=today_total,
    )

    prompt.display_info(f"Generating time entries using {provider.name()}...", quiet=ctx.quiet)
    proposed = dedupe(provider.generate(work_summary, context))
    if not proposed:
        prompt.display_warning("AI did not generate any time entries", quiet=ctx.quiet)
        return GenerateResult(created=0, failed=0, new_total_hours=today_total)

    if auto_approve or ctx.auto_start:
        approved = proposed
    else:
        approved = prompt.review_entries(proposed, projects)
    if not approved:
        prompt.display_info("No entries approved", quiet=ctx.quiet)
        return GenerateResult(created=0, failed=0, new_total_hours=today_total)

    fallback = fallback_assignment(existing)
    spent_date = date.today().isoformat()

    created: list[TimeEntry] = []
    failed = 0
    for entry in approved:
        result = _create(harvest, entry, spent_date, fallback, ctx)
        if result is None:
            failed += 1
        else:
            created.append(result)

    new_total = harvest.total_hours_today()
    if not ctx.quiet:
        typer.echo()
        if created:
            prompt.display_success(f"Successfully created {len(created)} time entries")
        if failed:
            prompt.display_warning(f"{failed} entries failed")
        typer.echo(f"\nTotal time today: {new_total:.2f} hours")

    return GenerateResult(
        created=len(created), failed=failed, new_total_hours=new_total, entries=created
    )
