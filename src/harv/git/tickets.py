from __future__ import annotations

import re
from collections.abc import Iterable

# ASCII word boundaries: a match is kept only when no [A-Za-z0-9_] touches
# either end of "<letters>-<digits>".
TICKET_RE = re.compile(r"\b([A-Za-z]+)-(\d+)\b", re.ASCII)


def extract_tickets(messages: Iterable[str], denylist: Iterable[str] = ()) -> list[str]:
    """Return sorted, de-duplicated ticket keys found in `messages`.

    Prefixes are normalised to upper case; any prefix in `denylist` (compared
    case-insensitively) is dropped.
    """
    deny = {d.upper() for d in denylist}
    found: set[str] = set()
    for msg in messages:
        for m in TICKET_RE.finditer(msg):
            prefix = m.group(1).upper()
            if prefix in deny:
                continue
            found.add(f"{prefix}-{m.group(2)}")
    return sorted(found)


def notes_reference_ticket(notes: str | None, key: str) -> bool:
    """True if `notes` mention `key` as a whole ticket token (ABC-12 != ABC-123)."""
    if not notes:
        return False
    return key.upper() in extract_tickets([notes])
