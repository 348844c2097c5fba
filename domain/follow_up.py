"""
Domain: Follow-up records and the append-only follow-up ledger.

Contract excerpts implemented here:
- A follow-up records one contact attempt: when, how, with what outcome, by whom.
- date, method, outcome and contacted_by are required.
- visit_number is meaningful only for in-visit follow-ups.
- The ledger is append-only. Storage order is entry order (oldest first); there is
  no update or delete.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from .errors import InvalidRecord
from .time import parse_utc_datetime, require_utc_timestamp


class FollowUpMethod(str, Enum):
    PHONE = "phone"
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    VISIT = "visit"
    VIDEO_CALL = "video_call"
    IN_VISIT = "in_visit"


class FollowUpOutcome(str, Enum):
    SUCCESSFUL = "successful"
    INTERESTED = "interested"
    NO_ANSWER = "no_answer"
    BUSY = "busy"
    NOT_INTERESTED = "not_interested"
    FOLLOW_UP_NEEDED = "follow_up_needed"


_REQUIRED_FIELDS = ("date", "method", "outcome", "contacted_by")


@dataclass(frozen=True, slots=True)
class FollowUpRecord:
    """
    A single logged contact attempt with a visitor.

    Construct through `from_payload` when the input is untrusted; it collects every
    problem into one InvalidRecord instead of failing on the first.
    """

    contacted_at: datetime
    method: FollowUpMethod
    outcome: FollowUpOutcome
    contacted_by: str
    notes: Optional[str] = None
    next_follow_up_at: Optional[datetime] = None
    visit_number: Optional[int] = None

    def __post_init__(self) -> None:
        problems = _check_record(
            contacted_at=self.contacted_at,
            method=self.method,
            next_follow_up_at=self.next_follow_up_at,
            visit_number=self.visit_number,
            contacted_by=self.contacted_by,
        )
        if problems:
            raise InvalidRecord(problems)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "FollowUpRecord":
        """
        Build a record from a loosely-typed mapping (API body or stored row).

        Accepts `date` or `contacted_at`, and `next_follow_up_date` or
        `next_follow_up_at`. Timestamps may be datetimes or ISO-8601 strings.
        """

        raw = dict(payload)
        if "date" not in raw and "contacted_at" in raw:
            raw["date"] = raw["contacted_at"]
        if "next_follow_up_date" not in raw and "next_follow_up_at" in raw:
            raw["next_follow_up_date"] = raw["next_follow_up_at"]

        problems: List[str] = [
            f"{name} is required" for name in _REQUIRED_FIELDS if _is_blank(raw.get(name))
        ]

        contacted_at = _parse_optional_timestamp(raw.get("date"), "date", problems)
        next_at = _parse_optional_timestamp(raw.get("next_follow_up_date"), "next_follow_up_date", problems)
        method = _parse_enum(FollowUpMethod, raw.get("method"), "method", problems)
        outcome = _parse_enum(FollowUpOutcome, raw.get("outcome"), "outcome", problems)

        visit_number = raw.get("visit_number")
        if visit_number is not None:
            try:
                visit_number = int(visit_number)
            except (TypeError, ValueError):
                problems.append("visit_number must be an integer")
                visit_number = None

        if problems:
            raise InvalidRecord(problems)

        notes = raw.get("notes")
        return cls(
            contacted_at=contacted_at,  # type: ignore[arg-type]
            method=method,  # type: ignore[arg-type]
            outcome=outcome,  # type: ignore[arg-type]
            contacted_by=str(raw["contacted_by"]).strip(),
            notes=str(notes) if notes not in (None, "") else None,
            next_follow_up_at=next_at,
            visit_number=visit_number,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "date": self.contacted_at.isoformat(),
            "method": self.method.value,
            "outcome": self.outcome.value,
            "contacted_by": self.contacted_by,
            "notes": self.notes,
            "next_follow_up_date": self.next_follow_up_at.isoformat() if self.next_follow_up_at else None,
            "visit_number": self.visit_number,
        }


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_optional_timestamp(value: Any, name: str, problems: List[str]) -> Optional[datetime]:
    if _is_blank(value):
        return None
    try:
        return parse_utc_datetime(value)
    except (TypeError, ValueError):
        problems.append(f"{name} is not a valid timestamp")
        return None


def _parse_enum(enum_cls: type, value: Any, name: str, problems: List[str]) -> Any:
    if _is_blank(value):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        problems.append(f"{name} must be one of: {allowed}")
        return None


def _check_record(
    *,
    contacted_at: datetime,
    method: FollowUpMethod,
    next_follow_up_at: Optional[datetime],
    visit_number: Optional[int],
    contacted_by: str,
) -> List[str]:
    problems: List[str] = []

    if _is_blank(contacted_by):
        problems.append("contacted_by is required")

    for name, value in (("date", contacted_at), ("next_follow_up_date", next_follow_up_at)):
        if value is None:
            continue
        try:
            require_utc_timestamp(name, value)
        except ValueError as exc:
            problems.append(str(exc))

    if not problems and next_follow_up_at is not None and next_follow_up_at < contacted_at:
        problems.append("next_follow_up_date must not be before date")

    if visit_number is not None:
        if method != FollowUpMethod.IN_VISIT:
            problems.append("visit_number is only valid for in_visit follow-ups")
        elif visit_number < 1:
            problems.append("visit_number must be 1 or greater")

    return problems


@dataclass(frozen=True, slots=True)
class FollowUpLedger:
    """
    Append-only, ordered contact history for one visitor.

    Appending returns a new ledger; the previous one is left unchanged. Entries are
    oldest first. Callers wanting most-recent-first reverse it themselves.
    """

    entries: Tuple[FollowUpRecord, ...] = ()

    def append(self, record: FollowUpRecord) -> "FollowUpLedger":
        return FollowUpLedger(entries=self.entries + (record,))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[FollowUpRecord]:
        return iter(self.entries)

    @property
    def latest(self) -> Optional[FollowUpRecord]:
        """Most recently entered record (by entry order, not by date)."""
        return self.entries[-1] if self.entries else None

    def is_due(self, as_of: datetime) -> bool:
        """
        True when the visitor needs contact as of the given time.

        An empty ledger is always due. Otherwise the latest entry's reminder decides;
        a latest entry without a reminder is not due.
        """

        require_utc_timestamp("as_of", as_of)
        latest = self.latest
        if latest is None:
            return True
        return latest.next_follow_up_at is not None and latest.next_follow_up_at <= as_of
