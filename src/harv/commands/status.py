from __future__ import annotations

import typer

from harv.core.config import Config
from harv.core.models import RunContext
from harv.harvest.client import HarvestClient


def run(config: Config, ctx: RunContext, *, harvest: HarvestClient | None = None) -> float:
    """Print the running timer and today's entries. Returns today's total hours."""
    harvest = harvest or HarvestClient(config.harvest)

    typer.echo("\nHarvest Timer Status")
    typer.echo("====================\n")

    entries = harvest.todays_entries()
    timer = next((e for e in entries if e.is_running), None)
    if timer is None:
        typer.echo("⊗ No timer running")
    else:
        typer.secho("✓ Timer Running", fg=typer.colors.GREEN)
        if timer.notes:
            typer.echo(f"  Notes: {timer.notes}")
        if timer.project:
            typer.echo(f"  Project: {timer.project.name}")
        if timer.task:
            typer.echo(f"  Task: {timer.task.name}")
        if timer.started_time:
            typer.echo(f"  Started: {timer.started_time}")
        if timer.hours is not None:
            typer.echo(f"  Duration: {timer.hours:.2f} hours")
    typer.echo()

    if entries:
        typer.echo("Today's Time Entries:")
        for e in entries:
            running = " (running)" if e.is_running else ""
            typer.echo(f"  • {e.hours or 0.0:.2f}h - {e.notes or 'No notes'}{running}")

    total = sum(e.hours or 0.0 for e in entries)
    typer.echo(f"\nTotal Time Today: {total:.2f} hours")
    return total
