from __future__ import annotations

import re

from harv.git.tickets import extract_tickets, notes_reference_ticket


def test_denylist_filters_prefix() -> None:
    assert extract_tickets(["CWE-22 review", "ABC-1 work"], ["CWE"]) == ["ABC-1"]


def test_denylist_is_case_insensitive() -> None:
    msgs = ["cve-2024 fix", "Cwe-1", "PROJ-7 done"]
    expected = ["PROJ-7"]
    assert extract_tickets(msgs, ["CVE", "CWE"]) == expected
    assert extract_tickets(msgs, ["cve", "cWe"]) == expected


def test_prefix_is_upper_cased_and_deduplicated() -> None:
    msg = "XyZ-9 then xyz-9 and again XYZ-9"
    assert extract_tickets([msg]) == ["XYZ-9"]


def test_results_are_sorted_and_well_formed() -> None:
    msgs = ["ZED-2: x", "abc-10 y", "ABC-9\n\nbody mentions abc-10"]
    out = extract_tickets(msgs)
    assert out == ["ABC-10", "ABC-9", "ZED-2"]
    assert out == extract_tickets(msgs)
    assert all(re.fullmatch(r"[A-Z]+-[0-9]+", t) for t in out)


def test_word_boundaries() -> None:
    assert extract_tickets(["fooABC-1"]) == ["FOOABC-1"]
    assert extract_tickets(["x_ABC-1", "1ABC-2", "ABC-3x", "ABC-4_"]) == []
    assert extract_tickets(["(ABC-5)", "feat/ABC-6-thing", "ABC-7."]) == ["ABC-5", "ABC-6", "ABC-7"]


def test_notes_reference_ticket_matches_whole_tokens() -> None:
    assert notes_reference_ticket("ABC-123 - working", "ABC-123")
    assert notes_reference_ticket("abc-123 lower", "ABC-123")
    assert not notes_reference_ticket("ABC-1234 - other", "ABC-123")
    assert not notes_reference_ticket("XABC-123", "ABC-123")
    assert not notes_reference_ticket(None, "ABC-123")
