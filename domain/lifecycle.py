"""
Domain: the visitor lifecycle state machine.

Contract excerpts implemented here:
- States: New, Engaged, ReadyForIntegration, Archived, Closed.
- Every (state, event) pair not in TRANSITIONS is an invalid transition; the
  visitor is left unchanged.
- MarkReady and Close require an assigned caretaker AND at least one follow-up at
  the moment of transition. No promotion or closure without documented contact.
- Closed is terminal.
- Integrate is the only way to close a visitor as a member.

Payload validation that needs the outside world (caretaker resolves to an active
member, district supplied, member record created) happens in the services before
`apply_event` is called. Everything here is pure.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .assignment import Assignment
from .errors import GuardNotSatisfied, InvalidTransition
from .follow_up import FollowUpRecord
from .time import require_utc_timestamp
from .visitor import ClosedOutcome, Visitor, VisitorState

MIN_FOLLOW_UPS_FOR_CLOSURE = 1

READY_NOTIFICATION = "visitor_ready"


class VisitorEvent(str, Enum):
    ASSIGN = "assign"
    REASSIGN = "reassign"
    ADD_FOLLOW_UP = "add_follow_up"
    MARK_READY = "mark_ready"
    UNMARK = "unmark"
    ARCHIVE = "archive"
    RESTORE = "restore"
    CLOSE = "close"
    INTEGRATE = "integrate"


Guard = Callable[[Visitor], List[str]]


def require_contact_history(visitor: Visitor) -> List[str]:
    """Unmet conditions for promoting or closing a visitor, as user-facing remedies."""

    unmet: List[str] = []
    if visitor.assigned_to is None:
        unmet.append("assign a caretaker first")
    if len(visitor.follow_ups) < MIN_FOLLOW_UPS_FOR_CLOSURE:
        unmet.append("log at least one follow-up first")
    return unmet


@dataclass(frozen=True, slots=True)
class Transition:
    source: VisitorState
    event: VisitorEvent
    target: VisitorState
    guard: Optional[Guard] = None
    closed_outcome: Optional[ClosedOutcome] = None
    notification: Optional[str] = None


def _table(*transitions: Transition) -> Mapping[Tuple[VisitorState, VisitorEvent], Transition]:
    table: Dict[Tuple[VisitorState, VisitorEvent], Transition] = {}
    for t in transitions:
        key = (t.source, t.event)
        if key in table:
            raise ValueError(f"Duplicate transition for {key}")
        table[key] = t
    return table


S = VisitorState
E = VisitorEvent

TRANSITIONS = _table(
    Transition(S.NEW, E.ASSIGN, S.ENGAGED),
    Transition(S.ENGAGED, E.REASSIGN, S.ENGAGED),
    Transition(S.ENGAGED, E.ADD_FOLLOW_UP, S.ENGAGED),
    Transition(S.ENGAGED, E.MARK_READY, S.READY_FOR_INTEGRATION,
               guard=require_contact_history, notification=READY_NOTIFICATION),
    Transition(S.ENGAGED, E.ARCHIVE, S.ARCHIVED),
    Transition(S.ENGAGED, E.CLOSE, S.CLOSED,
               guard=require_contact_history, closed_outcome=ClosedOutcome.INACTIVE),
    Transition(S.ARCHIVED, E.RESTORE, S.ENGAGED),
    Transition(S.ARCHIVED, E.CLOSE, S.CLOSED,
               guard=require_contact_history, closed_outcome=ClosedOutcome.INACTIVE),
    Transition(S.READY_FOR_INTEGRATION, E.UNMARK, S.ENGAGED),
    Transition(S.READY_FOR_INTEGRATION, E.INTEGRATE, S.CLOSED,
               closed_outcome=ClosedOutcome.MEMBER),
)

del S, E


def find_transition(state: VisitorState, event: VisitorEvent) -> Transition:
    transition = TRANSITIONS.get((state, event))
    if transition is None:
        raise InvalidTransition(state.value, event.value)
    return transition


def available_events(state: VisitorState) -> Tuple[VisitorEvent, ...]:
    """Events defined for a state, in declaration order. Empty for Closed."""

    return tuple(event for (source, event) in TRANSITIONS if source == state)


def check_transition(visitor: Visitor, event: VisitorEvent) -> Transition:
    """
    Validate that `event` may be applied to `visitor` right now.

    Raises InvalidTransition when the pair is undefined, GuardNotSatisfied when the
    guard fails. Returns the matching Transition otherwise.
    """

    transition = find_transition(visitor.state, event)
    if transition.guard is not None:
        unmet = transition.guard(visitor)
        if unmet:
            raise GuardNotSatisfied(event.value, unmet)
    return transition


def apply_event(
    visitor: Visitor,
    event: VisitorEvent,
    *,
    at: datetime,
    assignment: Optional[Assignment] = None,
    record: Optional[FollowUpRecord] = None,
    reason: Optional[str] = None,
    member_ref: Optional[str] = None,
) -> Visitor:
    """
    Apply one event and return the resulting visitor.

    `at` stamps state_changed_at when the state actually changes; self-loops
    (reassign, add follow-up) keep the previous stamp. The version is left alone;
    persisting bumps it.
    """

    require_utc_timestamp("at", at)
    transition = check_transition(visitor, event)

    changes: Dict[str, object] = {}
    if transition.target != visitor.state:
        changes["state"] = transition.target
        changes["state_changed_at"] = at

    if event in (VisitorEvent.ASSIGN, VisitorEvent.REASSIGN):
        if assignment is None or assignment.visitor_id != visitor.visitor_id:
            raise ValueError(f"{event.value} requires an assignment for visitor {visitor.visitor_id}")
        changes["assignment"] = assignment

    elif event == VisitorEvent.ADD_FOLLOW_UP:
        if record is None:
            raise ValueError("add_follow_up requires a follow-up record")
        changes["follow_ups"] = visitor.follow_ups.append(record)

    elif event == VisitorEvent.ARCHIVE:
        changes["archive_reason"] = _clean(reason)

    elif event == VisitorEvent.RESTORE:
        changes["archive_reason"] = None

    elif event == VisitorEvent.CLOSE:
        changes["close_reason"] = _clean(reason)

    elif event == VisitorEvent.INTEGRATE:
        if not member_ref:
            raise ValueError("integrate requires the created member reference")
        changes["member_record_ref"] = member_ref

    if transition.closed_outcome is not None:
        changes["closed_outcome"] = transition.closed_outcome

    return replace(visitor, **changes)


def _clean(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    reason = reason.strip()
    return reason or None


__all__ = [
    "MIN_FOLLOW_UPS_FOR_CLOSURE",
    "READY_NOTIFICATION",
    "VisitorEvent",
    "Transition",
    "TRANSITIONS",
    "require_contact_history",
    "find_transition",
    "available_events",
    "check_transition",
    "apply_event",
]
