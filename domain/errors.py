"""
Domain: typed errors for the visitor workflow.

Every failure a caller can see is one of these. They carry a stable `code` so the
API layer can map them to responses without string matching.
"""

from __future__ import annotations

from typing import Iterable, Tuple


class VisitorWorkflowError(Exception):
    """Base class for all visitor workflow failures."""

    code = "workflow_error"


class VisitorNotFound(VisitorWorkflowError):
    code = "visitor_not_found"

    def __init__(self, visitor_id: str) -> None:
        self.visitor_id = visitor_id
        super().__init__(f"Visitor not found: {visitor_id}")


class VisitorAlreadyExists(VisitorWorkflowError):
    code = "visitor_already_exists"

    def __init__(self, visitor_id: str) -> None:
        self.visitor_id = visitor_id
        super().__init__(f"A visitor with id {visitor_id} already exists")


class InvalidTransition(VisitorWorkflowError):
    """The requested event is not defined for the visitor's current state."""

    code = "invalid_transition"

    def __init__(self, state: str, event: str) -> None:
        self.state = state
        self.event = event
        super().__init__(f"Cannot {event} a visitor in state {state}")


class GuardNotSatisfied(VisitorWorkflowError):
    """
    The transition exists but its precondition failed.

    `unmet_conditions` lists each unmet condition as a remedy the user can act on
    ("assign a caretaker first").
    """

    code = "guard_not_satisfied"

    def __init__(self, event: str, unmet_conditions: Iterable[str]) -> None:
        self.event = event
        self.unmet_conditions: Tuple[str, ...] = tuple(unmet_conditions)
        super().__init__(f"Cannot {event}: " + "; ".join(self.unmet_conditions))


class InvalidInput(VisitorWorkflowError):
    """Payload validation failure for a specific operation."""

    code = "invalid_input"


class UnknownAssignee(InvalidInput):
    code = "unknown_assignee"

    def __init__(self, assignee_id: str) -> None:
        self.assignee_id = assignee_id
        super().__init__(f"Assignee does not resolve to an active member: {assignee_id}")


class InvalidRecord(InvalidInput):
    code = "invalid_record"

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems: Tuple[str, ...] = tuple(problems)
        super().__init__("Invalid follow-up record: " + "; ".join(self.problems))


class DistrictRequired(InvalidInput):
    code = "district_required"

    def __init__(self) -> None:
        super().__init__("A district is required to integrate a visitor")


class DownstreamUnavailable(VisitorWorkflowError):
    """An external collaborator (member store, notifications) did not respond."""

    code = "downstream_unavailable"

    def __init__(self, service: str, detail: str) -> None:
        self.service = service
        super().__init__(f"{service} unavailable: {detail}")


class ConcurrentModification(VisitorWorkflowError):
    """Optimistic-concurrency retries were exhausted for one visitor."""

    code = "concurrent_modification"

    def __init__(self, visitor_id: str, attempts: int) -> None:
        self.visitor_id = visitor_id
        self.attempts = attempts
        super().__init__(
            f"Visitor {visitor_id} was modified concurrently; gave up after {attempts} attempts"
        )


__all__ = [
    "VisitorWorkflowError",
    "VisitorNotFound",
    "VisitorAlreadyExists",
    "InvalidTransition",
    "GuardNotSatisfied",
    "InvalidInput",
    "UnknownAssignee",
    "InvalidRecord",
    "DistrictRequired",
    "DownstreamUnavailable",
    "ConcurrentModification",
]
