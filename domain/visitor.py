"""
Domain: Visitor (first-timer) entity.

Contract excerpts implemented here:
- A Visitor has exactly one state at any time, drawn from VisitorState.
- follow_ups is append-only; its length never decreases.
- Closed is terminal. A closed visitor carries a ClosedOutcome saying whether it
  left the funnel as a member or as inactive.
- `archived` and `converted` are projections of state, never stored separately.

The entity is frozen. Transitions (see domain/lifecycle.py) return new instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .assignment import Assignment
from .follow_up import FollowUpLedger
from .time import require_utc_timestamp


class VisitorState(str, Enum):
    NEW = "new"
    ENGAGED = "engaged"
    READY_FOR_INTEGRATION = "ready_for_integration"
    ARCHIVED = "archived"
    CLOSED = "closed"


class ClosedOutcome(str, Enum):
    MEMBER = "member"
    INACTIVE = "inactive"


@dataclass(frozen=True, slots=True)
class VisitorProfile:
    """Intake details. Seeds the member record at integration."""

    first_name: str
    last_name: str
    phone: str
    date_of_visit: datetime
    email: Optional[str] = None
    service_type: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("date_of_visit", self.date_of_visit)
        if not self.first_name.strip() or not self.last_name.strip():
            raise ValueError("first_name and last_name are required")
        if not self.phone.strip():
            raise ValueError("phone is required")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True, slots=True)
class Visitor:
    """
    A prospective member moving through the visitor-to-member funnel.

    version increases by one on every persisted change; repositories use it for
    optimistic concurrency.
    """

    visitor_id: str
    profile: VisitorProfile
    state: VisitorState
    created_at: datetime
    state_changed_at: datetime
    assignment: Optional[Assignment] = None
    follow_ups: FollowUpLedger = field(default_factory=FollowUpLedger)
    closed_outcome: Optional[ClosedOutcome] = None
    member_record_ref: Optional[str] = None
    close_reason: Optional[str] = None
    archive_reason: Optional[str] = None
    version: int = 0

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("state_changed_at", self.state_changed_at)
        if not isinstance(self.state, VisitorState):
            raise ValueError(f"state must be a VisitorState, got {self.state!r}")
        if (self.state == VisitorState.CLOSED) != (self.closed_outcome is not None):
            raise ValueError("closed_outcome is set if and only if state is closed")
        if self.member_record_ref is not None and self.closed_outcome != ClosedOutcome.MEMBER:
            raise ValueError("member_record_ref is only set on visitors closed as members")

    @staticmethod
    def new(visitor_id: str, profile: VisitorProfile, created_at: datetime) -> "Visitor":
        """A freshly registered visitor: New, unassigned, empty ledger."""

        return Visitor(
            visitor_id=visitor_id,
            profile=profile,
            state=VisitorState.NEW,
            created_at=created_at,
            state_changed_at=created_at,
        )

    @property
    def assigned_to(self) -> Optional[str]:
        return self.assignment.assignee_id if self.assignment else None

    @property
    def archived(self) -> bool:
        """Legacy boolean view of the Archived state."""
        return self.state == VisitorState.ARCHIVED

    @property
    def converted(self) -> bool:
        return self.closed_outcome == ClosedOutcome.MEMBER

    @property
    def is_terminal(self) -> bool:
        return self.state == VisitorState.CLOSED
