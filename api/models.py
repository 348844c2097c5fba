"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses. Workflow
rules (required follow-up fields, district, caretaker) are enforced by the
services, so request fields they own are optional here and failures come back as
typed workflow errors.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from domain.follow_up import FollowUpRecord
from services.visitor_lifecycle_service import (
    BulkAssignResult,
    TransitionResult,
    VisitorSnapshot,
    VisitorStats,
)


# ============================================================================
# Request Models
# ============================================================================

class VisitorRegistrationRequest(BaseModel):
    """Intake of a first-time visitor."""
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    date_of_visit: datetime
    email: Optional[str] = None
    service_type: Optional[str] = None
    notes: Optional[str] = None
    visitor_id: Optional[str] = Field(None, description="Client-supplied id; generated when omitted")

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Ada",
                "last_name": "Okafor",
                "phone": "+2348012345678",
                "date_of_visit": "2025-03-02T09:00:00Z",
                "service_type": "Sunday Service"
            }
        }


class AssignRequest(BaseModel):
    """Assign or reassign a caretaker."""
    assignee_id: str = Field(..., description="Member id of the caretaker")


class FollowUpRequest(BaseModel):
    """A contact attempt to append to the visitor's ledger."""
    date: Optional[datetime] = None
    method: Optional[str] = None
    outcome: Optional[str] = None
    contacted_by: Optional[str] = None
    notes: Optional[str] = None
    next_follow_up_date: Optional[datetime] = None
    visit_number: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "date": "2025-03-04T18:30:00Z",
                "method": "phone",
                "outcome": "interested",
                "contacted_by": "caretaker-1",
                "notes": "Wants to join the choir",
                "next_follow_up_date": "2025-03-11T18:30:00Z"
            }
        }


class ReasonRequest(BaseModel):
    """Optional free-text reason for archive/close."""
    reason: Optional[str] = None


class IntegrateRequest(BaseModel):
    """District (required) and unit (optional) for the new member record."""
    district_id: Optional[str] = None
    unit_id: Optional[str] = None


class BulkAssignRequest(BaseModel):
    visitor_ids: List[str] = Field(..., min_length=1)
    assignee_id: str


# ============================================================================
# Response Models
# ============================================================================

class FollowUpResponse(BaseModel):
    date: datetime
    method: str
    outcome: str
    contacted_by: str
    notes: Optional[str] = None
    next_follow_up_date: Optional[datetime] = None
    visit_number: Optional[int] = None

    @classmethod
    def from_record(cls, record: FollowUpRecord) -> "FollowUpResponse":
        return cls(
            date=record.contacted_at,
            method=record.method.value,
            outcome=record.outcome.value,
            contacted_by=record.contacted_by,
            notes=record.notes,
            next_follow_up_date=record.next_follow_up_at,
            visit_number=record.visit_number,
        )


class VisitorResponse(BaseModel):
    """Visitor snapshot: state, assignment, ledger (oldest first) and flags."""
    visitor_id: str
    full_name: str
    state: str
    assigned_to: Optional[str] = None
    assigned_at: Optional[datetime] = None
    follow_ups: List[FollowUpResponse]
    follow_up_count: int
    archived: bool
    converted: bool
    closed_outcome: Optional[str] = None
    member_record_ref: Optional[str] = None
    close_reason: Optional[str] = None
    archive_reason: Optional[str] = None
    state_changed_at: datetime
    version: int
    available_events: List[str]

    @classmethod
    def from_snapshot(cls, snapshot: VisitorSnapshot) -> "VisitorResponse":
        return cls(
            visitor_id=snapshot.visitor_id,
            full_name=snapshot.full_name,
            state=snapshot.state.value,
            assigned_to=snapshot.assigned_to,
            assigned_at=snapshot.assigned_at,
            follow_ups=[FollowUpResponse.from_record(r) for r in snapshot.follow_ups],
            follow_up_count=snapshot.follow_up_count,
            archived=snapshot.archived,
            converted=snapshot.converted,
            closed_outcome=snapshot.closed_outcome.value if snapshot.closed_outcome else None,
            member_record_ref=snapshot.member_record_ref,
            close_reason=snapshot.close_reason,
            archive_reason=snapshot.archive_reason,
            state_changed_at=snapshot.state_changed_at,
            version=snapshot.version,
            available_events=[e.value for e in snapshot.available_events],
        )


class TransitionResponse(BaseModel):
    """Result of an applied transition."""
    event: str
    previous_state: str
    visitor: VisitorResponse
    notification: Optional[str] = Field(
        None,
        description="delivered, failed, unresolved or disabled; null when the transition notifies no one"
    )

    @classmethod
    def from_result(cls, result: TransitionResult) -> "TransitionResponse":
        return cls(
            event=result.event.value,
            previous_state=result.previous_state.value,
            visitor=VisitorResponse.from_snapshot(result.visitor),
            notification=result.notification.value if result.notification else None,
        )


class RecheckResponse(BaseModel):
    completed: bool
    result: Optional[TransitionResponse] = None
    message: str


class AvailableEventsResponse(BaseModel):
    visitor_id: str
    state: str
    available_events: List[str]


class VisitorListResponse(BaseModel):
    items: List[VisitorResponse]
    total_count: int


class BulkAssignResponse(BaseModel):
    assignee_id: str
    assigned: List[str]
    failures: Dict[str, str]
    items_requested: int

    @classmethod
    def from_result(cls, result: BulkAssignResult) -> "BulkAssignResponse":
        return cls(
            assignee_id=result.assignee_id,
            assigned=result.assigned,
            failures=result.failures,
            items_requested=result.items_requested,
        )


class StatsResponse(BaseModel):
    total: int
    by_state: Dict[str, int]
    converted: int
    unassigned: int

    @classmethod
    def from_stats(cls, stats: VisitorStats) -> "StatsResponse":
        return cls(
            total=stats.total,
            by_state={state.value: count for state, count in stats.by_state.items()},
            converted=stats.converted,
            unassigned=stats.unassigned,
        )


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
    unmet_conditions: Optional[List[str]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "error": "guard_not_satisfied",
                "detail": "Cannot close: assign a caretaker first",
                "status_code": 422,
                "unmet_conditions": ["assign a caretaker first"]
            }
        }
