"""
Row mapping for the `visitors` table.

Follow-ups and the active assignment live on the visitor row (JSONB and columns)
so a transition is a single-row conditional update.

Legacy rows written before the state column existed carry only the booleans
`archived` and `converted`; those are read as Closed, Archived, Engaged or New. New rows
always write both flags as projections of state.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.assignment import Assignment
from domain.follow_up import FollowUpLedger, FollowUpRecord
from domain.time import parse_utc_datetime, to_iso_utc
from domain.visitor import ClosedOutcome, Visitor, VisitorProfile, VisitorState


def _optional_ts(row: Mapping[str, Any], key: str):
    value = row.get(key)
    return parse_utc_datetime(value) if value else None


def _state_from_row(row: Mapping[str, Any]) -> VisitorState:
    raw_state: Optional[str] = row.get("state")
    if raw_state:
        return VisitorState(raw_state)
    if row.get("converted"):
        return VisitorState.CLOSED
    if row.get("archived"):
        return VisitorState.ARCHIVED
    return VisitorState.ENGAGED if row.get("assigned_to") else VisitorState.NEW


def _closed_outcome_from_row(row: Mapping[str, Any], state: VisitorState) -> Optional[ClosedOutcome]:
    if state != VisitorState.CLOSED:
        return None
    raw_outcome = row.get("closed_outcome")
    if raw_outcome:
        return ClosedOutcome(raw_outcome)
    return ClosedOutcome.MEMBER if row.get("converted") else ClosedOutcome.INACTIVE


def row_to_visitor(row: Mapping[str, Any]) -> Visitor:
    """Convert a Supabase row into a Visitor."""

    visitor_id = str(row["visitor_id"])
    created_at = parse_utc_datetime(row["created_at_utc"])

    assignment = None
    if row.get("assigned_to"):
        assignment = Assignment(
            visitor_id=visitor_id,
            assignee_id=str(row["assigned_to"]),
            assigned_at=_optional_ts(row, "assigned_at_utc") or created_at,
        )

    ledger = FollowUpLedger(
        entries=tuple(FollowUpRecord.from_payload(item) for item in (row.get("follow_ups") or []))
    )

    state = _state_from_row(row)
    closed_outcome = _closed_outcome_from_row(row, state)

    return Visitor(
        visitor_id=visitor_id,
        profile=VisitorProfile(
            first_name=str(row["first_name"]),
            last_name=str(row["last_name"]),
            phone=str(row["phone"]),
            date_of_visit=parse_utc_datetime(row["date_of_visit_utc"]),
            email=row.get("email"),
            service_type=row.get("service_type"),
            notes=row.get("notes"),
        ),
        state=state,
        created_at=created_at,
        state_changed_at=_optional_ts(row, "state_changed_at_utc") or created_at,
        assignment=assignment,
        follow_ups=ledger,
        closed_outcome=closed_outcome,
        member_record_ref=row.get("member_record_ref") if closed_outcome == ClosedOutcome.MEMBER else None,
        close_reason=row.get("close_reason"),
        archive_reason=row.get("archive_reason"),
        version=int(row.get("version") or 0),
    )


def visitor_to_row(visitor: Visitor) -> dict[str, Any]:
    """Serialize a Visitor for insert/update. `version` is left to the caller."""

    profile = visitor.profile
    assignment = visitor.assignment
    return {
        "visitor_id": visitor.visitor_id,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "phone": profile.phone,
        "email": profile.email,
        "date_of_visit_utc": to_iso_utc(profile.date_of_visit, name="date_of_visit"),
        "service_type": profile.service_type,
        "notes": profile.notes,
        "state": visitor.state.value,
        "archived": visitor.archived,
        "converted": visitor.converted,
        "assigned_to": assignment.assignee_id if assignment else None,
        "assigned_at_utc": to_iso_utc(assignment.assigned_at, name="assigned_at") if assignment else None,
        "follow_ups": [record.to_payload() for record in visitor.follow_ups],
        "closed_outcome": visitor.closed_outcome.value if visitor.closed_outcome else None,
        "member_record_ref": visitor.member_record_ref,
        "close_reason": visitor.close_reason,
        "archive_reason": visitor.archive_reason,
        "created_at_utc": to_iso_utc(visitor.created_at, name="created_at"),
        "state_changed_at_utc": to_iso_utc(visitor.state_changed_at, name="state_changed_at"),
    }
