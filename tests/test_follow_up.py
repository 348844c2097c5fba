"""
Tests for `domain/follow_up.py`.

Covers contract rules:
- date, method, outcome and contacted_by are required; every missing field is reported.
- Unknown methods/outcomes and malformed timestamps are rejected as InvalidRecord.
- visit_number is only accepted for in-visit follow-ups.
- The ledger is append-only: appending returns a new ledger and never shrinks.
- Due-ness for reminders is decided by the latest entry.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from domain.errors import InvalidRecord
from domain.follow_up import FollowUpLedger, FollowUpMethod, FollowUpOutcome, FollowUpRecord

CONTACTED = datetime(2025, 3, 4, 18, 30, 0, tzinfo=timezone.utc)


def _record(**overrides) -> FollowUpRecord:
    fields = dict(
        contacted_at=CONTACTED,
        method=FollowUpMethod.PHONE,
        outcome=FollowUpOutcome.INTERESTED,
        contacted_by="caretaker-1",
    )
    fields.update(overrides)
    return FollowUpRecord(**fields)


def test_from_payload_builds_record_from_wire_values() -> None:
    """Verify a well-formed payload produces a typed UTC record."""

    record = FollowUpRecord.from_payload(
        {
            "date": "2025-03-04T18:30:00Z",
            "method": "whatsapp",
            "outcome": "follow_up_needed",
            "contacted_by": " caretaker-1 ",
            "notes": "Call back after work",
            "next_follow_up_date": "2025-03-11T18:30:00Z",
        }
    )

    assert record.contacted_at == CONTACTED
    assert record.method is FollowUpMethod.WHATSAPP
    assert record.outcome is FollowUpOutcome.FOLLOW_UP_NEEDED
    assert record.contacted_by == "caretaker-1"
    assert record.next_follow_up_at == CONTACTED + timedelta(days=7)
    assert record.notes == "Call back after work"


def test_from_payload_reports_every_missing_required_field() -> None:
    """Verify all four required fields are named when absent."""

    with pytest.raises(InvalidRecord) as exc_info:
        FollowUpRecord.from_payload({"notes": "no details"})

    problems = exc_info.value.problems
    for name in ("date", "method", "outcome", "contacted_by"):
        assert f"{name} is required" in problems


def test_from_payload_treats_blank_strings_as_missing() -> None:
    """Verify whitespace-only values do not satisfy required fields."""

    with pytest.raises(InvalidRecord) as exc_info:
        FollowUpRecord.from_payload(
            {"date": "2025-03-04T18:30:00Z", "method": "phone", "outcome": "busy", "contacted_by": "   "}
        )

    assert exc_info.value.problems == ("contacted_by is required",)


def test_from_payload_rejects_unknown_method_and_outcome() -> None:
    """Verify enum values outside the allowed sets are rejected."""

    with pytest.raises(InvalidRecord) as exc_info:
        FollowUpRecord.from_payload(
            {"date": "2025-03-04T18:30:00Z", "method": "pigeon", "outcome": "maybe", "contacted_by": "c-1"}
        )

    problems = " ".join(exc_info.value.problems)
    assert "method must be one of" in problems
    assert "outcome must be one of" in problems


def test_from_payload_rejects_malformed_date() -> None:
    """Verify a non-ISO date is an InvalidRecord, not a crash."""

    with pytest.raises(InvalidRecord):
        FollowUpRecord.from_payload(
            {"date": "next tuesday", "method": "phone", "outcome": "busy", "contacted_by": "c-1"}
        )


def test_visit_number_only_valid_for_in_visit() -> None:
    """Verify visit_number is rejected on other methods and accepted on in_visit."""

    with pytest.raises(InvalidRecord):
        _record(visit_number=2)

    record = _record(method=FollowUpMethod.IN_VISIT, visit_number=2)
    assert record.visit_number == 2

    with pytest.raises(InvalidRecord):
        _record(method=FollowUpMethod.IN_VISIT, visit_number=0)


def test_record_requires_utc_timestamps() -> None:
    """Verify naive or offset timestamps are rejected."""

    with pytest.raises(InvalidRecord):
        _record(contacted_at=datetime(2025, 3, 4, 18, 30))

    with pytest.raises(InvalidRecord):
        _record(next_follow_up_at=datetime(2025, 3, 5, tzinfo=timezone(timedelta(hours=1))))


def test_reminder_cannot_precede_contact() -> None:
    """Verify next_follow_up_date must not be before the contact date."""

    with pytest.raises(InvalidRecord):
        _record(next_follow_up_at=CONTACTED - timedelta(days=1))


def test_record_is_immutable() -> None:
    """Verify records cannot be edited after entry."""

    record = _record()
    with pytest.raises(FrozenInstanceError):
        record.outcome = FollowUpOutcome.BUSY  # type: ignore[misc]


def test_ledger_append_returns_new_ledger_and_keeps_order() -> None:
    """Verify append is non-destructive and preserves entry order (oldest first)."""

    empty = FollowUpLedger()
    first = _record(outcome=FollowUpOutcome.NO_ANSWER)
    second = _record(outcome=FollowUpOutcome.INTERESTED)

    one = empty.append(first)
    two = one.append(second)

    assert len(empty) == 0
    assert len(one) == 1
    assert list(two) == [first, second]
    assert two.latest is second


def test_ledger_due_rules() -> None:
    """Verify empty ledgers are due and otherwise the latest reminder decides."""

    as_of = CONTACTED + timedelta(days=3)

    assert FollowUpLedger().is_due(as_of) is True
    assert FollowUpLedger().append(_record()).is_due(as_of) is False

    overdue = FollowUpLedger().append(_record(next_follow_up_at=CONTACTED + timedelta(days=2)))
    assert overdue.is_due(as_of) is True

    later = FollowUpLedger().append(_record(next_follow_up_at=CONTACTED + timedelta(days=5)))
    assert later.is_due(as_of) is False


def test_payload_round_trip_preserves_in_visit_details() -> None:
    """Verify stored payloads read back into an equal record."""

    record = _record(method=FollowUpMethod.IN_VISIT, visit_number=3, notes="Met after service")
    assert FollowUpRecord.from_payload(record.to_payload()) == record
