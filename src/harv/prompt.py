"""Interactive prompts built on typer.

Every prompt turns an aborted input (Ctrl+C / EOF) into UserCancelledError.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import date, timedelta
from typing import ParamSpec, TypeVar

import click
import typer
from thefuzz import fuzz

from harv.core.errors import HarvError, InvalidEntryError, NoTicketsFoundError, UserCancelledError
from harv.core.models import (
    MAX_DESCRIPTION_LENGTH,
    EntryType,
    Project,
    ProposedEntry,
    Task,
    Ticket,
    TimeEntry,
)
from harv.core.timeparse import format_hours, parse_hours

P = ParamSpec("P")
R = TypeVar("R")

CUSTOM_DATE_MAX_DAYS_BACK = 90
RULE = "=" * 60
FUZZY_THRESHOLD = 70

# Newer typer releases raise their own Abort, which is not a click Abort.
_ABORTS = (click.exceptions.Abort, typer.Abort)


def cancellable(fn: Callable[P, R]) -> Callable[P, R]:
    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return fn(*args, **kwargs)
        except _ABORTS as e:
            raise UserCancelledError() from e

    return wrapper


# -- status lines ------------------------------------------------------


def display_success(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        typer.secho(f"✓ {message}", fg=typer.colors.GREEN)


def display_info(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        typer.secho(f"ℹ {message}", fg=typer.colors.CYAN)


def display_warning(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        typer.secho(f"⚠ {message}", fg=typer.colors.YELLOW)


def _heading(title: str) -> None:
    typer.echo()
    typer.secho(RULE, fg=typer.colors.CYAN, bold=True)
    typer.secho(title, fg=typer.colors.CYAN, bold=True)
    typer.secho(RULE, fg=typer.colors.CYAN, bold=True)


# -- primitives --------------------------------------------------------


@cancellable
def select(title: str, items: Sequence[str], default: int = 0) -> int:
    """Numbered single choice. Returns the index into `items`."""
    if not items:
        raise HarvError("nothing to select from")
    typer.echo(f"\n{title}")
    for i, item in enumerate(items, start=1):
        typer.echo(f"  {i}) {item}")
    choice = typer.prompt("Choice", type=click.IntRange(1, len(items)), default=default + 1)
    return choice - 1


def match_score(query: str, item: str) -> int:
    """0-100 partial-ratio score; a blank query matches everything."""
    q = query.strip().lower()
    if not q:
        return 100
    return fuzz.partial_ratio(q, item.lower())


def fuzzy_filter(query: str, items: Sequence[str]) -> list[int]:
    """Indexes of `items` scoring at least FUZZY_THRESHOLD, best first.

    Ties keep their input order.
    """
    scored = [(match_score(query, item), i) for i, item in enumerate(items)]
    hits = [(score, i) for score, i in scored if score >= FUZZY_THRESHOLD]
    return [i for _, i in sorted(hits, key=lambda h: -h[0])]


@cancellable
def fuzzy_select(title: str, items: Sequence[str]) -> int:
    """Filter by a search string, then pick from the narrowed list."""
    if not items:
        raise HarvError("nothing to select from")
    while True:
        query = typer.prompt(
            f"{title} (type to filter, Enter for all)", default="", show_default=False
        )
        hits = fuzzy_filter(query, items)
        if hits:
            break
        display_warning(f"No matches for '{query}'")
    picked = select(title, [items[i] for i in hits])
    return hits[picked]


@cancellable
def confirm(message: str, default: bool = False) -> bool:
    return typer.confirm(message, default=default)


@cancellable
def text(
    message: str,
    *,
    default: str | None = None,
    validate: Callable[[str], str | None] | None = None,
) -> str:
    """Free text input; `validate` returns an error message or None."""
    while True:
        if default is None:
            value = typer.prompt(message)
        else:
            value = typer.prompt(message, default=default)
        error = validate(value) if validate else None
        if error is None:
            return value
        display_warning(error)


@cancellable
def edit(initial: str = "") -> str:
    result = click.edit(initial)
    if result is None:
        raise UserCancelledError()
    return result


def parse_selection(answer: str, n: int) -> list[int]:
    """Parse `1,3-4` style selections into sorted 0-based indexes.

    Blank selects everything, `none` selects nothing.
    """
    answer = answer.strip().lower()
    if not answer:
        return list(range(n))
    if answer == "none":
        return []

    picked: set[int] = set()
    for part in answer.split(","):
        part = part.strip()
        m = re.fullmatch(r"(\d+)(?:-(\d+))?", part)
        if not m:
            raise ValueError(f"not a number or range: {part!r}")
        lo = int(m.group(1))
        hi = int(m.group(2) or lo)
        if lo < 1 or hi > n or lo > hi:
            raise ValueError(f"out of range: {part!r} (1-{n})")
        picked.update(range(lo - 1, hi))
    return sorted(picked)


@cancellable
def multi_select(title: str, items: Sequence[str]) -> list[int]:
    typer.echo(f"\n{title}")
    for i, item in enumerate(items, start=1):
        typer.echo(f"  {i}) {item}")
    while True:
        answer = typer.prompt(
            "Select entries (e.g. 1,3-4; Enter for all; 'none' for nothing)",
            default="",
            show_default=False,
        )
        try:
            return parse_selection(answer, len(items))
        except ValueError as e:
            display_warning(str(e))


# -- domain prompts ----------------------------------------------------


def _ticket_label(t: Ticket) -> str:
    status = f" [{t.status}]" if t.status else ""
    return f"{t.key} - {t.summary}{status}"


def select_ticket(tickets: Sequence[Ticket]) -> Ticket:
    if not tickets:
        raise NoTicketsFoundError()
    typer.echo("\nMultiple Jira tickets found in today's commits:")
    return tickets[select("Select a ticket to track", [_ticket_label(t) for t in tickets])]


def _show_timer(timer: TimeEntry) -> None:
    project = f" ({timer.project.name})" if timer.project else ""
    typer.secho("\n⚠ Timer currently running:", fg=typer.colors.YELLOW, bold=True)
    typer.echo(f"   {timer.notes or 'Unknown'}{project}")
    if timer.started_time:
        typer.echo(f"   Started at: {timer.started_time}")
    if timer.hours is not None:
        typer.echo(f"   Duration: {timer.hours:.2f} hours")


def confirm_stop_timer(timer: TimeEntry, replacement: str) -> bool:
    _show_timer(timer)
    typer.echo(f"\nNew timer: {replacement}")
    return confirm("Stop current timer and start new one?", default=False)


def confirm_stop_timer_for_new(timer: TimeEntry) -> bool:
    _show_timer(timer)
    return confirm("Stop current timer to create new entry?", default=False)


def work_summary() -> str:
    typer.echo("\nEnter a summary of your work today (you can describe multiple activities).")
    return edit("Enter your work summary here...\n")


def entry_type() -> EntryType:
    idx = select(
        "What kind of entry?",
        ["Running timer (start now)", "Stopped entry (fixed hours)"],
    )
    return EntryType.RUNNING if idx == 0 else EntryType.STOPPED


def validate_custom_date(value: str, today: date) -> str | None:
    try:
        d = date.fromisoformat(value.strip())
    except ValueError:
        return "Invalid date format. Use YYYY-MM-DD"
    if d > today:
        return "Date cannot be in the future"
    if (today - d).days > CUSTOM_DATE_MAX_DAYS_BACK:
        return f"Date cannot be more than {CUSTOM_DATE_MAX_DAYS_BACK} days in the past"
    return None


def entry_date(today: date) -> str:
    items = ["Today", "Yesterday"] + [f"{n} days ago" for n in range(2, 7)] + ["Custom date..."]
    idx = select("Select date", items)
    if idx < len(items) - 1:
        return (today - timedelta(days=idx)).isoformat()
    value = text("Date (YYYY-MM-DD)", validate=lambda v: validate_custom_date(v, today))
    return date.fromisoformat(value.strip()).isoformat()


def select_project(projects: Sequence[Project]) -> Project:
    if not projects:
        raise HarvError("No projects available")
    labels = [f"{p.name} [{p.code}]" if p.code else p.name for p in projects]
    return projects[fuzzy_select("Select project", labels)]


def select_task(tasks: Sequence[Task]) -> Task:
    if not tasks:
        raise HarvError("No tasks available for this project")
    return tasks[fuzzy_select("Select task", [t.name for t in tasks])]


def validate_description(value: str) -> str | None:
    if not value.strip():
        return "Description cannot be empty"
    if len(value.strip()) > MAX_DESCRIPTION_LENGTH:
        return f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)"
    return None


def validate_hours(value: str) -> str | None:
    try:
        parse_hours(value)
    except InvalidEntryError as e:
        return str(e)
    return None


def description(default: str | None = None) -> str:
    return text("Description", default=default, validate=validate_description).strip()


def hours(default: str | None = None) -> float:
    return parse_hours(text("Hours (e.g., 1.5 or 1:30)", default=default, validate=validate_hours))


def confirm_entry_creation(
    kind: EntryType,
    spent_date: str,
    project: str,
    task: str,
    notes: str,
    entry_hours: float | None,
) -> bool:
    _heading("Entry Summary")
    typer.echo(f"Type:        {'Running Timer' if kind.is_running else 'Stopped Entry'}")
    typer.echo(f"Date:        {spent_date}")
    typer.echo(f"Project:     {project}")
    typer.echo(f"Task:        {task}")
    typer.echo(f"Description: {notes}")
    if entry_hours is not None:
        typer.echo(f"Hours:       {entry_hours:.2f}h")
    typer.secho(RULE, fg=typer.colors.CYAN, bold=True)
    return confirm("Create this entry?", default=True)


def _entry_label(e: TimeEntry, today: str) -> str:
    project = e.project.name if e.project else "Unknown Project"
    task = e.task.name if e.task else "Unknown Task"
    h = f" ({e.hours:.2f}h)" if e.hours is not None else ""
    day = f" [{e.spent_date}]" if e.spent_date != today else ""
    return f"{e.notes or '(no description)'} - {project} / {task}{h}{day}"


def select_entry(entries: Sequence[TimeEntry], today: str) -> TimeEntry:
    if not entries:
        raise HarvError("No time entries available")
    labels = [_entry_label(e, today) for e in entries]
    return entries[fuzzy_select("Select entry to continue", labels)]


def continue_mode() -> str:
    idx = select(
        "How should the entry be continued?",
        ["Start a new timer for today", "Restart the selected entry"],
    )
    return "new" if idx == 0 else "restart"


def _proposed_label(e: ProposedEntry, project_names: dict[int, str]) -> str:
    conf = f" ({e.confidence * 100:.0f}%)" if e.confidence is not None else ""
    project = project_names.get(e.project_id, "Unknown Project")
    return f"{e.hours:.2f}h - {project} - {e.description}{conf}"


def review_entries(
    entries: Sequence[ProposedEntry], projects: Sequence[Project]
) -> list[ProposedEntry]:
    """Approve, optionally edit and confirm proposed entries.

    Returns the approved entries, or an empty list when nothing was kept
    or the final confirmation was declined.
    """
    names = {p.id: p.name for p in projects}
    _heading("AI Generated Time Entries")
    total = sum(e.hours for e in entries)
    typer.echo(f"Total: {total:.2f}h across {len(entries)} entries")

    keep = multi_select("Entries to create:", [_proposed_label(e, names) for e in entries])
    approved = [entries[i] for i in keep]
    if not approved:
        return []

    if confirm("Would you like to edit any entries? (hours/description)", default=False):
        to_edit = multi_select("Entries to edit:", [_proposed_label(e, names) for e in approved])
        for i in to_edit:
            e = approved[i]
            typer.secho(f"\nEditing entry {i + 1}", fg=typer.colors.CYAN, bold=True)
            approved[i] = replace(
                e,
                hours=hours(default=format_hours(e.hours)),
                description=description(default=e.description),
            )
            typer.secho("✓ Entry updated", fg=typer.colors.GREEN)

    _heading("Final entries to create:")
    for e in approved:
        typer.echo(f"  • {_proposed_label(e, names)}")
    typer.echo(f"\nTotal: {sum(e.hours for e in approved):.2f}h")
    if not confirm("Proceed with creation?", default=True):
        return []
    return approved
