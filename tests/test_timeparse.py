from __future__ import annotations

import pytest

from harv.core.errors import InvalidEntryError
from harv.core.timeparse import format_hours, parse_hours


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("1.5", 1.5),
        ("  2 ", 2.0),
        ("0.25", 0.25),
        ("24", 24.0),
        ("1:30", 1.5),
        ("0:01", 1 / 60),
        ("23:59", 23 + 59 / 60),
        ("8:00", 8.0),
    ],
)
def test_parse_hours_accepts(text: str, expected: float) -> None:
    assert parse_hours(text) == pytest.approx(expected, abs=1e-9)


def test_colon_form_matches_minutes_for_every_hour() -> None:
    for h in range(0, 24):
        for m in (0, 1, 15, 30, 59):
            if (h, m) == (0, 0):
                continue
            assert parse_hours(f"{h}:{m:02}") == pytest.approx(h + m / 60, abs=1e-9)


@pytest.mark.parametrize(
    "text",
    ["", "   ", "0", "0.0", "0:00", "25", "24.01", "24:01", "-1", "abc", "1:60", "1:", ":30",
     "1:30:00", "1.5:30", "-1:30", "1:-5", "nan", "inf", "1e400", "1_0", "\u0663", "1.5h"],
)
def test_parse_hours_rejects(text: str) -> None:
    with pytest.raises(InvalidEntryError):
        parse_hours(text)


def test_format_hours() -> None:
    assert format_hours(1.5) == "1:30"
    assert format_hours(0.25) == "0:15"
    assert parse_hours(format_hours(7.75)) == pytest.approx(7.75)
