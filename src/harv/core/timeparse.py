from __future__ import annotations

import math
import re

from harv.core.errors import InvalidEntryError

MAX_HOURS = 24.0

# Plain ASCII decimal, optional sign and exponent. float() alone would also
# take "1_0" and non-ASCII digits.
_DECIMAL_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", re.ASCII)


def parse_hours(text: str) -> float:
    """Parse `1.5` or `1:30` style durations into hours.

    The result must lie in (0, 24].
    """
    s = text.strip()
    if not s:
        raise InvalidEntryError("Hours input cannot be empty")

    hours = _parse_colon(s) if ":" in s else _parse_decimal(s)

    if hours <= 0:
        raise InvalidEntryError("Hours must be greater than 0")
    if hours > MAX_HOURS:
        raise InvalidEntryError("Hours cannot exceed 24")
    return hours


def _parse_decimal(s: str) -> float:
    if not _DECIMAL_RE.fullmatch(s):
        raise InvalidEntryError(f"Invalid hours format: '{s}'")
    value = float(s)
    # "1e400" overflows to inf
    if not math.isfinite(value):
        raise InvalidEntryError(f"Invalid hours format: '{s}'")
    return value


def _parse_colon(s: str) -> float:
    parts = s.split(":")
    if len(parts) != 2:
        raise InvalidEntryError("Colon format must be H:MM (e.g. 1:30)")

    h_s, m_s = parts
    # isdigit() rejects signs, blanks and decimals in either half.
    if not (h_s.isascii() and h_s.isdigit()):
        raise InvalidEntryError(f"Invalid hours in '{s}'")
    if not (m_s.isascii() and m_s.isdigit()):
        raise InvalidEntryError(f"Invalid minutes in '{s}'")

    h = int(h_s)
    m = int(m_s)
    if m > 59:
        raise InvalidEntryError("Minutes must be between 0 and 59")
    return h + m / 60


def format_hours(hours: float) -> str:
    total_min = round(hours * 60)
    return f"{total_min // 60}:{total_min % 60:02d}"
