from __future__ import annotations

from datetime import date

import click
import pytest
import typer

import harv.prompt as prompt
from harv.core.errors import UserCancelledError
from harv.core.models import EntryType, Project, ProposedEntry

TODAY = date(2026, 3, 15)


def _answers(monkeypatch, *values) -> list:
    queue = list(values)
    asked: list = []

    def fake_prompt(text, **_kw):
        asked.append(text)
        return queue.pop(0)

    monkeypatch.setattr(prompt.typer, "prompt", fake_prompt)
    return asked


def test_fuzzy_filter_ranks_matches_and_tolerates_typos() -> None:
    assert prompt.fuzzy_filter("", ["b", "a"]) == [0, 1]
    assert prompt.fuzzy_filter("DEV", ["Admin", "Internal Development"]) == [1]
    assert prompt.fuzzy_filter("devlopment", ["Admin", "Development"]) == [1]
    # exact hits first, ties in input order, near misses after
    assert prompt.fuzzy_filter("build", ["Bild", "Rebuild docs", "Build"]) == [1, 2, 0]
    assert prompt.fuzzy_filter("zzz", ["Admin", "Design"]) == []


def test_parse_selection() -> None:
    assert prompt.parse_selection("", 3) == [0, 1, 2]
    assert prompt.parse_selection("none", 3) == []
    assert prompt.parse_selection("3, 1-2", 4) == [0, 1, 2]
    for bad in ("0", "5", "2-1", "a"):
        with pytest.raises(ValueError):
            prompt.parse_selection(bad, 4)


def test_validate_custom_date() -> None:
    assert prompt.validate_custom_date("2026-03-15", TODAY) is None
    assert prompt.validate_custom_date("2025-12-15", TODAY) is None
    assert "future" in prompt.validate_custom_date("2026-03-16", TODAY)
    assert "90 days" in prompt.validate_custom_date("2025-12-14", TODAY)
    assert "YYYY-MM-DD" in prompt.validate_custom_date("15/03/2026", TODAY)


def test_entry_date_menu(monkeypatch) -> None:
    _answers(monkeypatch, 2)
    assert prompt.entry_date(TODAY) == "2026-03-14"

    _answers(monkeypatch, 8, "2026-04-01", "2026-02-01")
    assert prompt.entry_date(TODAY) == "2026-02-01"


def test_fuzzy_select_filters_then_picks(monkeypatch) -> None:
    _answers(monkeypatch, "zzz", "dev", 2)
    items = ["Admin", "Development", "DevOps", "Design"]
    assert prompt.fuzzy_select("Select task", items) == 2


@pytest.mark.parametrize("abort", [click.exceptions.Abort, typer.Abort])
def test_abort_becomes_user_cancelled(monkeypatch, abort) -> None:
    def raise_abort(*_a, **_k):
        raise abort()

    monkeypatch.setattr(prompt.typer, "prompt", raise_abort)
    with pytest.raises(UserCancelledError):
        prompt.select("Pick", ["a", "b"])

    monkeypatch.setattr(prompt.typer, "confirm", raise_abort)
    with pytest.raises(UserCancelledError):
        prompt.confirm("Stop?")


def test_editor_closed_without_saving_cancels(monkeypatch) -> None:
    monkeypatch.setattr(prompt.click, "edit", lambda *_a, **_k: None)
    with pytest.raises(UserCancelledError):
        prompt.work_summary()


def test_entry_type(monkeypatch) -> None:
    _answers(monkeypatch, 2)
    assert prompt.entry_type() is EntryType.STOPPED


def test_hours_prompt_reprompts_until_valid(monkeypatch) -> None:
    _answers(monkeypatch, "0", "25", "1:45")
    assert prompt.hours() == pytest.approx(1.75)


def test_review_entries_approve_edit_confirm(monkeypatch) -> None:
    entries = [
        ProposedEntry("Build", 1, 10, 2.0),
        ProposedEntry("Meet", 1, 11, 1.0, confidence=0.8),
    ]
    # keep entry 2 only, edit it, then confirm
    _answers(monkeypatch, "2", "1", "1:30", "Planning meeting")
    confirms = iter([True, True])
    monkeypatch.setattr(prompt.typer, "confirm", lambda *_a, **_k: next(confirms))

    approved = prompt.review_entries(entries, [Project(1, "Alpha")])
    assert approved == [ProposedEntry("Planning meeting", 1, 11, 1.5, confidence=0.8)]


def test_review_entries_declined(monkeypatch) -> None:
    _answers(monkeypatch, "")
    confirms = iter([False, False])
    monkeypatch.setattr(prompt.typer, "confirm", lambda *_a, **_k: next(confirms))
    assert prompt.review_entries([ProposedEntry("Build", 1, 10, 2.0)], []) == []
