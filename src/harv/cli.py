from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import typer

from harv import prompt
from harv.commands import add as add_cmd
from harv.commands import continue_ as continue_cmd
from harv.commands import generate as generate_cmd
from harv.commands import status as status_cmd
from harv.commands import stop as stop_cmd
from harv.commands import sync as sync_cmd
from harv.core.config import Config, describe, load_config, write_template
from harv.core.errors import HarvError, ShowHelp
from harv.core.models import RunContext
from harv.core.paths import default_config_path

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

app = typer.Typer(
    add_completion=False,
    help="Track time in Harvest from your git commits and Jira tickets.",
)
config_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Manage the config file.")
app.add_typer(config_app, name="config")


def configure_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def _version() -> str:
    try:
        return version("harv")
    except PackageNotFoundError:
        return "unknown"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"harv {_version()}")
        raise typer.Exit()


@contextmanager
def _handle_errors(ctx: typer.Context) -> Iterator[None]:
    try:
        yield
    except ShowHelp as e:
        typer.echo(ctx.find_root().get_help())
        raise typer.Exit(code=0) from e
    except HarvError as e:
        logger.error("%s", e)
        raise typer.Exit(code=1) from e


def _run_context(ctx: typer.Context) -> RunContext:
    obj = ctx.find_root().obj
    return obj if isinstance(obj, RunContext) else RunContext()


def _load() -> Config:
    return load_config()


def _sync(ctx: typer.Context, auto_start: bool, auto_stop: bool, repo: Path | None) -> None:
    run_ctx = replace(_run_context(ctx), auto_start=auto_start, auto_stop=auto_stop)
    with _handle_errors(ctx):
        logger.info("starting sync")
        sync_cmd.run(_load(), run_ctx, repo)


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print errors"),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Show what would be written without calling Harvest"
    ),
    show_version: bool = typer.Option(
        False,
        "--version",
        is_eager=True,
        callback=_version_callback,
        help="Show the version and exit",
    ),
) -> None:
    """Track time in Harvest from your git commits and Jira tickets.

    Without a subcommand, runs `sync`.
    """
    configure_logging(verbose, quiet)
    ctx.obj = RunContext(dry_run=dry_run, quiet=quiet, verbose=verbose)
    if dry_run:
        prompt.display_info("Dry run: no changes will be made in Harvest", quiet=quiet)
    if ctx.invoked_subcommand is None:
        _sync(ctx, auto_start=False, auto_stop=False, repo=None)


@app.command()
def sync(
    ctx: typer.Context,
    auto_start: bool = typer.Option(False, "--auto-start", help="Start the timer without asking"),
    auto_stop: bool = typer.Option(
        False, "--auto-stop", help="Stop a different running timer without asking"
    ),
    repo: Path | None = typer.Option(  # noqa: B008
        None, "--repo", help="Scan only this repository"
    ),
) -> None:
    """Start a timer for the Jira ticket in today's commits."""
    _sync(ctx, auto_start, auto_stop, repo)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the running timer and today's entries."""
    with _handle_errors(ctx):
        status_cmd.run(_load(), _run_context(ctx))


@app.command()
def stop(ctx: typer.Context) -> None:
    """Stop the running timer."""
    with _handle_errors(ctx):
        stop_cmd.run(_load(), _run_context(ctx))


@app.command()
def add(ctx: typer.Context) -> None:
    """Interactively add a running or stopped entry."""
    with _handle_errors(ctx):
        add_cmd.run(_load(), _run_context(ctx))


@app.command("continue")
def continue_(
    ctx: typer.Context,
    days: int | None = typer.Option(
        None, "--days", "-d", min=1, help="Look back this many days (1 = today only)"
    ),
    auto_start: bool = typer.Option(
        False, "--auto-start", help="Stop a running timer without asking"
    ),
) -> None:
    """Restart work on a recent entry."""
    run_ctx = replace(_run_context(ctx), auto_start=auto_start)
    with _handle_errors(ctx):
        continue_cmd.run(_load(), run_ctx, days)


@app.command()
def generate(
    ctx: typer.Context,
    summary: str | None = typer.Argument(None, help="Work summary (opens $EDITOR if omitted)"),
    provider: str | None = typer.Option(None, "--provider", help="openai or anthropic"),
    auto_approve: bool = typer.Option(
        False, "--auto-approve", help="Create entries without review"
    ),
    target_hours: str | None = typer.Option(
        None, "--target-hours", help="Hours to fill today, e.g. 7.5 or 7:30"
    ),
) -> None:
    """Generate today's entries from a work summary with an LLM."""
    with _handle_errors(ctx):
        generate_cmd.run(
            _load(),
            _run_context(ctx),
            summary,
            provider_name=provider,
            auto_approve=auto_approve,
            target_hours=target_hours,
        )


@config_app.command("init")
def config_init(ctx: typer.Context) -> None:
    """Write a config template."""
    with _handle_errors(ctx):
        path = write_template()
        prompt.display_success(f"Created configuration file at {path}")
        typer.echo("Edit it to add your Harvest and Jira credentials.")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Print the effective configuration with secrets masked."""
    with _handle_errors(ctx):
        config = _load()
        typer.echo(f"Configuration file: {default_config_path()}\n")
        for line in describe(config):
            typer.echo(line)


@config_app.command("validate")
def config_validate(ctx: typer.Context) -> None:
    """Check the config file."""
    with _handle_errors(ctx):
        _load()
        prompt.display_success("Configuration is valid")


def main() -> None:
    app()
