"""
Visitor lifecycle service: the only writer of visitor state.

Handles:
- One entry point per lifecycle event (assign, reassign, add_follow_up, mark_ready,
  unmark, archive, restore, close, integrate)
- Per-visitor serialization: a lock per visitor id within the process, and an
  optimistic version check (with re-load and guard re-evaluation) across processes
- Side effects after the write: the ready notification is sent once the new state
  is stored, so a slow or failed send never leaves the visitor in limbo
- Read models for callers (snapshot, ledger, valid events, work queues, stats)
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple
from uuid import uuid4

from domain.errors import (
    ConcurrentModification,
    VisitorAlreadyExists,
    VisitorNotFound,
    VisitorWorkflowError,
)
from domain.follow_up import FollowUpRecord
from domain.lifecycle import (
    READY_NOTIFICATION,
    VisitorEvent,
    apply_event,
    available_events,
    check_transition,
)
from domain.time import require_utc_timestamp, utcnow
from domain.visitor import ClosedOutcome, Visitor, VisitorProfile, VisitorState
from repositories.interfaces import DuplicateVisitor, VersionConflict, VisitorRepository
from services.assignment_service import AssignmentRegistry
from services.integration_service import IntegrationBridge
from services.notification_service import NotificationDispatcher, NotificationStatus

logger = logging.getLogger(__name__)

_OPEN_STATES = (
    VisitorState.NEW,
    VisitorState.ENGAGED,
    VisitorState.READY_FOR_INTEGRATION,
    VisitorState.ARCHIVED,
)


@dataclass(frozen=True, slots=True)
class VisitorSnapshot:
    """Read-only view of a visitor for callers. Follow-ups are oldest first."""

    visitor_id: str
    full_name: str
    state: VisitorState
    assigned_to: Optional[str]
    assigned_at: Optional[datetime]
    follow_ups: Tuple[FollowUpRecord, ...]
    archived: bool
    converted: bool
    closed_outcome: Optional[ClosedOutcome]
    member_record_ref: Optional[str]
    close_reason: Optional[str]
    archive_reason: Optional[str]
    state_changed_at: datetime
    version: int
    available_events: Tuple[VisitorEvent, ...]

    @property
    def follow_up_count(self) -> int:
        return len(self.follow_ups)

    @staticmethod
    def of(visitor: Visitor) -> "VisitorSnapshot":
        return VisitorSnapshot(
            visitor_id=visitor.visitor_id,
            full_name=visitor.profile.full_name,
            state=visitor.state,
            assigned_to=visitor.assigned_to,
            assigned_at=visitor.assignment.assigned_at if visitor.assignment else None,
            follow_ups=visitor.follow_ups.entries,
            archived=visitor.archived,
            converted=visitor.converted,
            closed_outcome=visitor.closed_outcome,
            member_record_ref=visitor.member_record_ref,
            close_reason=visitor.close_reason,
            archive_reason=visitor.archive_reason,
            state_changed_at=visitor.state_changed_at,
            version=visitor.version,
            available_events=available_events(visitor.state),
        )


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """
    Outcome of an applied transition.

    notification is None when the transition has no side effect; otherwise it says
    whether the notification was delivered. It never reflects on `visitor`, which
    is the stored state after the transition.
    """

    event: VisitorEvent
    previous_state: VisitorState
    visitor: VisitorSnapshot
    notification: Optional[NotificationStatus] = None


@dataclass(frozen=True, slots=True)
class BulkAssignResult:
    """
    Per-visitor outcome of a bulk assignment. Each visitor is handled on its own;
    one failure does not undo the others.
    """

    assignee_id: str
    assigned: List[str]
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def items_requested(self) -> int:
        return len(self.assigned) + len(self.failures)


@dataclass(frozen=True, slots=True)
class VisitorStats:
    by_state: Dict[VisitorState, int]
    converted: int
    unassigned: int

    @property
    def total(self) -> int:
        return sum(self.by_state.values())


class _VisitorLocks:
    """
    One lock per visitor id, kept only while some caller holds or waits on it.

    Entries are reference-counted and dropped when the last user releases, so the
    map stays bounded by the number of in-flight transitions.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, List[Any]] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, visitor_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(visitor_id)
            if entry is None:
                entry = self._entries[visitor_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[visitor_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


# Called after the transition is known to be defined (and its guard holds) for the
# loaded visitor. Returns apply_event keyword arguments, or None to abandon.
Prepare = Callable[[Visitor, datetime], Optional[Mapping[str, Any]]]


class VisitorLifecycleService:
    def __init__(
        self,
        visitors: VisitorRepository,
        registry: AssignmentRegistry,
        bridge: IntegrationBridge,
        dispatcher: NotificationDispatcher,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_conflict_retries: int = 3,
    ) -> None:
        if max_conflict_retries < 1:
            raise ValueError("max_conflict_retries must be >= 1")
        self._visitors = visitors
        self._registry = registry
        self._bridge = bridge
        self._dispatcher = dispatcher
        self._clock = clock
        self._max_attempts = max_conflict_retries
        self._locks = _VisitorLocks()

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def register_visitor(self, profile: VisitorProfile, visitor_id: Optional[str] = None) -> VisitorSnapshot:
        """Create a visitor in state New with no caretaker and an empty ledger."""

        visitor = Visitor.new(visitor_id or str(uuid4()), profile, created_at=self._clock())
        try:
            stored = self._visitors.insert(visitor)
        except DuplicateVisitor as exc:
            logger.warning("Rejected duplicate visitor id", extra={"visitor_id": visitor.visitor_id})
            raise VisitorAlreadyExists(visitor.visitor_id) from exc
        logger.info("Registered visitor", extra={"visitor_id": stored.visitor_id})
        return VisitorSnapshot.of(stored)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def assign(self, visitor_id: str, assignee_id: str) -> TransitionResult:
        return self._run(visitor_id, VisitorEvent.ASSIGN, self._assignment_for(assignee_id))

    def reassign(self, visitor_id: str, assignee_id: str) -> TransitionResult:
        return self._run(visitor_id, VisitorEvent.REASSIGN, self._assignment_for(assignee_id))

    def add_follow_up(self, visitor_id: str, record: FollowUpRecord | Mapping[str, Any]) -> TransitionResult:
        """
        Append a contact attempt to the visitor's ledger.

        Accepts a FollowUpRecord or a raw mapping. Mappings are validated once the
        visitor is loaded and the event is known to apply, and raise InvalidRecord
        listing every missing or malformed field.
        """

        def prepare(_visitor: Visitor, _at: datetime) -> Mapping[str, Any]:
            if isinstance(record, FollowUpRecord):
                return {"record": record}
            return {"record": FollowUpRecord.from_payload(record)}

        return self._run(visitor_id, VisitorEvent.ADD_FOLLOW_UP, prepare)

    def mark_ready(self, visitor_id: str) -> TransitionResult:
        return self._run(visitor_id, VisitorEvent.MARK_READY)

    def unmark(self, visitor_id: str) -> TransitionResult:
        return self._run(visitor_id, VisitorEvent.UNMARK)

    def archive(self, visitor_id: str, reason: Optional[str] = None) -> TransitionResult:
        return self._run(visitor_id, VisitorEvent.ARCHIVE, lambda _v, _at: {"reason": reason})

    def restore(self, visitor_id: str) -> TransitionResult:
        return self._run(visitor_id, VisitorEvent.RESTORE)

    def close(self, visitor_id: str, reason: Optional[str] = None) -> TransitionResult:
        return self._run(visitor_id, VisitorEvent.CLOSE, lambda _v, _at: {"reason": reason})

    def integrate(self, visitor_id: str, district_id: Optional[str], unit_id: Optional[str] = None) -> TransitionResult:
        """
        Convert a ready visitor into a member and close it with outcome member.

        The member record is created (or found, if an earlier attempt already made
        it) before the visitor is touched. If the member store fails, the visitor
        stays ReadyForIntegration and DownstreamUnavailable is raised.
        """

        def prepare(visitor: Visitor, _at: datetime) -> Mapping[str, Any]:
            return {"member_ref": self._bridge.member_for(visitor, district_id, unit_id)}

        return self._run(visitor_id, VisitorEvent.INTEGRATE, prepare)

    def recheck_integration(self, visitor_id: str) -> Optional[TransitionResult]:
        """
        Finish an integration whose member record exists but was never linked.

        Returns None when no member record links back to the visitor (nothing to
        finish; call integrate again). Never creates a member.
        """

        def prepare(visitor: Visitor, _at: datetime) -> Optional[Mapping[str, Any]]:
            member = self._bridge.find_existing(visitor)
            if member is None:
                return None
            return {"member_ref": member.member_id}

        return self._run(visitor_id, VisitorEvent.INTEGRATE, prepare)

    def bulk_assign(self, visitor_ids: List[str], assignee_id: str) -> BulkAssignResult:
        """
        Assign (New) or reassign (Engaged) each visitor to the same caretaker.

        Failures are collected per visitor id with the error message.
        """

        assigned: List[str] = []
        failures: Dict[str, str] = {}

        for visitor_id in dict.fromkeys(visitor_ids):
            try:
                visitor = self._load(visitor_id)
                if visitor.state == VisitorState.ENGAGED:
                    self.reassign(visitor_id, assignee_id)
                else:
                    self.assign(visitor_id, assignee_id)
            except VisitorWorkflowError as exc:
                failures[visitor_id] = str(exc)
            except RuntimeError as exc:
                logger.error(
                    "Storage failure during bulk assignment",
                    extra={"visitor_id": visitor_id, "assignee_id": assignee_id},
                    exc_info=True,
                )
                failures[visitor_id] = str(exc)
            else:
                assigned.append(visitor_id)

        logger.info(
            f"Bulk assignment: {len(assigned)} assigned, {len(failures)} failed",
            extra={"assignee_id": assignee_id},
        )
        return BulkAssignResult(assignee_id=assignee_id, assigned=assigned, failures=failures)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_visitor(self, visitor_id: str) -> VisitorSnapshot:
        return VisitorSnapshot.of(self._load(visitor_id))

    def list_follow_ups(self, visitor_id: str) -> Tuple[FollowUpRecord, ...]:
        """The visitor's ledger, oldest first."""
        return self._load(visitor_id).follow_ups.entries

    def current_assignment(self, visitor_id: str):
        return self._registry.current(visitor_id)

    def available_events(self, visitor_id: str) -> Tuple[VisitorEvent, ...]:
        return available_events(self._load(visitor_id).state)

    def list_needing_follow_up(self, as_of: Optional[datetime] = None) -> List[VisitorSnapshot]:
        """Engaged visitors with no contact yet, or whose latest reminder is due."""

        as_of = as_of or self._clock()
        require_utc_timestamp("as_of", as_of)
        return [
            VisitorSnapshot.of(v)
            for v in self._visitors.list_by_states([VisitorState.ENGAGED])
            if v.follow_ups.is_due(as_of)
        ]

    def list_assigned_to(self, assignee_id: str) -> List[VisitorSnapshot]:
        """Visitors still in the funnel (not Closed) assigned to a caretaker."""

        return [
            VisitorSnapshot.of(v)
            for v in self._visitors.list_by_states(_OPEN_STATES)
            if v.assigned_to == assignee_id
        ]

    def list_ready_for_integration(self) -> List[VisitorSnapshot]:
        return [
            VisitorSnapshot.of(v)
            for v in self._visitors.list_by_states([VisitorState.READY_FOR_INTEGRATION])
        ]

    def stats(self) -> VisitorStats:
        visitors = self._visitors.list_by_states(list(VisitorState))
        by_state = Counter(v.state for v in visitors)
        return VisitorStats(
            by_state={state: by_state.get(state, 0) for state in VisitorState},
            converted=sum(1 for v in visitors if v.converted),
            unassigned=sum(1 for v in visitors if v.assigned_to is None and not v.is_terminal),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, visitor_id: str) -> Visitor:
        visitor = self._visitors.get(visitor_id)
        if visitor is None:
            raise VisitorNotFound(visitor_id)
        return visitor

    def _assignment_for(self, assignee_id: str) -> Prepare:
        def prepare(visitor: Visitor, at: datetime) -> Mapping[str, Any]:
            return {"assignment": self._registry.assign(visitor.visitor_id, assignee_id, at=at)}

        return prepare

    def _run(
        self,
        visitor_id: str,
        event: VisitorEvent,
        prepare: Optional[Prepare] = None,
    ) -> Optional[TransitionResult]:
        """
        Load, check, apply and store one event for one visitor.

        Guards are evaluated against freshly loaded state on every attempt, so a
        write that lost a version race is re-judged rather than blindly re-applied.
        """

        log_context: Dict[str, Any] = {"visitor_id": visitor_id, "event": event.value}

        with self._locks.hold(visitor_id):
            for attempt in range(1, self._max_attempts + 1):
                before = self._load(visitor_id)
                try:
                    transition = check_transition(before, event)
                except VisitorWorkflowError as exc:
                    logger.warning(
                        f"Refused {event.value}: {exc}",
                        extra={**log_context, "from_state": before.state.value},
                    )
                    raise

                at = self._clock()
                kwargs = prepare(before, at) if prepare is not None else {}
                if kwargs is None:
                    return None

                updated = apply_event(before, event, at=at, **kwargs)
                try:
                    stored = self._visitors.save(updated, expected_version=before.version)
                except VersionConflict:
                    logger.warning(
                        f"Version conflict on attempt {attempt}; reloading",
                        extra={**log_context, "expected_version": before.version},
                    )
                    continue
                break
            else:
                raise ConcurrentModification(visitor_id, self._max_attempts)

        logger.info(
            f"Visitor {event.value}: {before.state.value} -> {stored.state.value}",
            extra={**log_context, "from_state": before.state.value, "to_state": stored.state.value},
        )

        notification = None
        if transition.notification == READY_NOTIFICATION:
            notification = self._dispatcher.notify_ready(visitor_id)

        return TransitionResult(
            event=event,
            previous_state=before.state,
            visitor=VisitorSnapshot.of(stored),
            notification=notification,
        )


__all__ = [
    "VisitorSnapshot",
    "TransitionResult",
    "BulkAssignResult",
    "VisitorStats",
    "VisitorLifecycleService",
]
