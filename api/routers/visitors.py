"""
Visitor API Endpoints.

One endpoint per lifecycle transition, plus read endpoints for the visitor
snapshot, its follow-up ledger and the first-timer work queues. Workflow errors
are turned into responses by the handlers registered in api/main.py.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_lifecycle_service
from api.models import (
    AssignRequest,
    AvailableEventsResponse,
    BulkAssignRequest,
    BulkAssignResponse,
    ErrorResponse,
    FollowUpRequest,
    FollowUpResponse,
    IntegrateRequest,
    RecheckResponse,
    ReasonRequest,
    StatsResponse,
    TransitionResponse,
    VisitorListResponse,
    VisitorRegistrationRequest,
    VisitorResponse,
)
from domain.errors import InvalidInput
from domain.time import parse_utc_datetime
from domain.visitor import VisitorProfile
from services.visitor_lifecycle_service import VisitorLifecycleService

router = APIRouter(
    responses={
        404: {"model": ErrorResponse, "description": "Visitor not found"},
        409: {"model": ErrorResponse, "description": "Invalid transition, duplicate id or concurrent modification"},
        422: {"model": ErrorResponse, "description": "Guard not satisfied or invalid input"},
        503: {"model": ErrorResponse, "description": "Member store unavailable"},
    }
)


def _list(snapshots) -> VisitorListResponse:
    items = [VisitorResponse.from_snapshot(s) for s in snapshots]
    return VisitorListResponse(items=items, total_count=len(items))


# ----------------------------------------------------------------------------
# Collection endpoints (declared before /visitors/{visitor_id})
# ----------------------------------------------------------------------------

@router.post(
    "/visitors",
    response_model=VisitorResponse,
    status_code=201,
    summary="Register Visitor",
    description="Register a first-time visitor. New visitors start unassigned with an empty follow-up ledger."
)
def register_visitor(
    request: VisitorRegistrationRequest,
    service: VisitorLifecycleService = Depends(get_lifecycle_service),
):
    try:
        profile = VisitorProfile(
            first_name=request.first_name,
            last_name=request.last_name,
            phone=request.phone,
            date_of_visit=parse_utc_datetime(request.date_of_visit),
            email=request.email,
            service_type=request.service_type,
            notes=request.notes,
        )
    except ValueError as exc:
        raise InvalidInput(str(exc)) from exc
    return VisitorResponse.from_snapshot(service.register_visitor(profile, visitor_id=request.visitor_id))


@router.get("/visitors/stats", response_model=StatsResponse, summary="Visitor Funnel Stats")
def get_stats(service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    return StatsResponse.from_stats(service.stats())


@router.get(
    "/visitors/needing-follow-up",
    response_model=VisitorListResponse,
    summary="Visitors Needing Follow-up",
    description="Engaged visitors never contacted, or whose latest reminder date has passed."
)
def get_needing_follow_up(
    as_of: Optional[datetime] = Query(None, description="Reference time (defaults to now)"),
    service: VisitorLifecycleService = Depends(get_lifecycle_service),
):
    return _list(service.list_needing_follow_up(parse_utc_datetime(as_of) if as_of else None))


@router.get(
    "/visitors/ready-for-integration",
    response_model=VisitorListResponse,
    summary="Visitors Ready for Integration",
)
def get_ready_for_integration(service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    return _list(service.list_ready_for_integration())


@router.get(
    "/visitors/assigned/{assignee_id}",
    response_model=VisitorListResponse,
    summary="Caretaker Assignments",
    description="Visitors still in the funnel assigned to the given caretaker."
)
def get_assigned(assignee_id: str, service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    return _list(service.list_assigned_to(assignee_id))


@router.post("/visitors/bulk-assign", response_model=BulkAssignResponse, summary="Bulk Assign Caretaker")
def bulk_assign(
    request: BulkAssignRequest,
    service: VisitorLifecycleService = Depends(get_lifecycle_service),
):
    """
    Assign one caretaker to many visitors.

    Each visitor is handled independently; failures are reported per visitor id
    and do not undo successful assignments.
    """
    return BulkAssignResponse.from_result(service.bulk_assign(request.visitor_ids, request.assignee_id))


# ----------------------------------------------------------------------------
# Single visitor reads
# ----------------------------------------------------------------------------

@router.get("/visitors/{visitor_id}", response_model=VisitorResponse, summary="Get Visitor")
def get_visitor(visitor_id: str, service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    return VisitorResponse.from_snapshot(service.get_visitor(visitor_id))


@router.get(
    "/visitors/{visitor_id}/follow-ups",
    response_model=list[FollowUpResponse],
    summary="List Follow-ups",
    description="The visitor's follow-up ledger, oldest first."
)
def list_follow_ups(visitor_id: str, service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    return [FollowUpResponse.from_record(r) for r in service.list_follow_ups(visitor_id)]


@router.get(
    "/visitors/{visitor_id}/available-events",
    response_model=AvailableEventsResponse,
    summary="Valid Transitions",
    description="Events defined for the visitor's current state. Guards are not evaluated."
)
def get_available_events(visitor_id: str, service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    snapshot = service.get_visitor(visitor_id)
    return AvailableEventsResponse(
        visitor_id=snapshot.visitor_id,
        state=snapshot.state.value,
        available_events=[e.value for e in snapshot.available_events],
    )


# ----------------------------------------------------------------------------
# Transitions
# ----------------------------------------------------------------------------

@router.post("/visitors/{visitor_id}/assign", response_model=TransitionResponse, summary="Assign Caretaker")
def assign(
    visitor_id: str,
    request: AssignRequest,
    service: VisitorLifecycleService = Depends(get_lifecycle_service),
):
    return TransitionResponse.from_result(service.assign(visitor_id, request.assignee_id))


@router.post("/visitors/{visitor_id}/reassign", response_model=TransitionResponse, summary="Reassign Caretaker")
def reassign(
    visitor_id: str,
    request: AssignRequest,
    service: VisitorLifecycleService = Depends(get_lifecycle_service),
):
    return TransitionResponse.from_result(service.reassign(visitor_id, request.assignee_id))


@router.post("/visitors/{visitor_id}/follow-ups", response_model=TransitionResponse, summary="Add Follow-up")
def add_follow_up(
    visitor_id: str,
    request: FollowUpRequest,
    service: VisitorLifecycleService = Depends(get_lifecycle_service),
):
    payload = request.model_dump(exclude_none=True)
    return TransitionResponse.from_result(service.add_follow_up(visitor_id, payload))


@router.post(
    "/visitors/{visitor_id}/mark-ready",
    response_model=TransitionResponse,
    summary="Mark Ready for Integration",
    description="Requires an assigned caretaker and at least one follow-up. Notifies stakeholders."
)
def mark_ready(visitor_id: str, service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    return TransitionResponse.from_result(service.mark_ready(visitor_id))


@router.post("/visitors/{visitor_id}/unmark", response_model=TransitionResponse, summary="Unmark Ready")
def unmark(visitor_id: str, service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    return TransitionResponse.from_result(service.unmark(visitor_id))


@router.post("/visitors/{visitor_id}/archive", response_model=TransitionResponse, summary="Archive Visitor")
def archive(
    visitor_id: str,
    request: Optional[ReasonRequest] = None,
    service: VisitorLifecycleService = Depends(get_lifecycle_service),
):
    return TransitionResponse.from_result(service.archive(visitor_id, request.reason if request else None))


@router.post("/visitors/{visitor_id}/restore", response_model=TransitionResponse, summary="Restore Visitor")
def restore(visitor_id: str, service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    return TransitionResponse.from_result(service.restore(visitor_id))


@router.post(
    "/visitors/{visitor_id}/close",
    response_model=TransitionResponse,
    summary="Close Visitor (Inactive)",
    description="Requires an assigned caretaker and at least one follow-up."
)
def close(
    visitor_id: str,
    request: Optional[ReasonRequest] = None,
    service: VisitorLifecycleService = Depends(get_lifecycle_service),
):
    return TransitionResponse.from_result(service.close(visitor_id, request.reason if request else None))


@router.post(
    "/visitors/{visitor_id}/integrate",
    response_model=TransitionResponse,
    summary="Integrate Visitor as Member",
)
def integrate(
    visitor_id: str,
    request: IntegrateRequest,
    service: VisitorLifecycleService = Depends(get_lifecycle_service),
):
    """
    Create the member record and close the visitor with outcome `member`.

    **Failure behaviour:**
    If the member store does not respond, the visitor stays
    `ready_for_integration` and the response is 503. Retrying is safe: a member
    record that already links back to this visitor is reused, never duplicated.
    """
    return TransitionResponse.from_result(service.integrate(visitor_id, request.district_id, request.unit_id))


@router.post(
    "/visitors/{visitor_id}/integration/recheck",
    response_model=RecheckResponse,
    summary="Re-check Integration",
    description="Link a member record created by an earlier, unconfirmed integration attempt."
)
def recheck_integration(visitor_id: str, service: VisitorLifecycleService = Depends(get_lifecycle_service)):
    result = service.recheck_integration(visitor_id)
    if result is None:
        return RecheckResponse(
            completed=False,
            message="No member record links back to this visitor; integrate again.",
        )
    return RecheckResponse(
        completed=True,
        result=TransitionResponse.from_result(result),
        message="Integration completed with the existing member record.",
    )
