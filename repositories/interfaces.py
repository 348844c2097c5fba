"""
Repository and collaborator interfaces.

The services depend on these protocols only. Supabase-backed implementations live
next to this module; in-memory ones are in repositories/memory.py.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, runtime_checkable

from domain.member import Member, NewMemberRequest
from domain.visitor import Visitor, VisitorState


class VersionConflict(Exception):
    """Raised when a save's expected version no longer matches storage."""

    def __init__(self, visitor_id: str, expected_version: int) -> None:
        self.visitor_id = visitor_id
        self.expected_version = expected_version
        super().__init__(f"Visitor {visitor_id} is no longer at version {expected_version}")


class DuplicateVisitor(Exception):
    """Raised when an insert reuses an existing visitor id."""

    def __init__(self, visitor_id: str) -> None:
        self.visitor_id = visitor_id
        super().__init__(f"Visitor {visitor_id} already exists")


@runtime_checkable
class VisitorRepository(Protocol):
    """Storage for Visitor aggregates (state, assignment, ledger together)."""

    def get(self, visitor_id: str) -> Optional[Visitor]:
        ...

    def insert(self, visitor: Visitor) -> Visitor:
        """
        Raises:
            DuplicateVisitor: a visitor with the same id is already stored.
        """
        ...

    def save(self, visitor: Visitor, *, expected_version: int) -> Visitor:
        """
        Persist `visitor` only if storage is still at `expected_version`.

        Returns the stored visitor with version = expected_version + 1.

        Raises:
            VersionConflict: when another writer got there first.
        """
        ...

    def list_by_states(self, states: Iterable[VisitorState]) -> List[Visitor]:
        ...


@runtime_checkable
class MemberDirectory(Protocol):
    def resolve_active_member(self, member_id: str) -> Optional[Member]:
        """Return the member if it exists and is active, else None."""
        ...


@runtime_checkable
class MemberStore(Protocol):
    def create_member(self, request: NewMemberRequest) -> str:
        """Create a member record and return its id."""
        ...

    def find_by_source_visitor(self, visitor_id: str) -> Optional[Member]:
        ...


@runtime_checkable
class NotificationGateway(Protocol):
    def send(self, event: str, visitor_id: str) -> None:
        ...


__all__ = [
    "VersionConflict",
    "DuplicateVisitor",
    "VisitorRepository",
    "MemberDirectory",
    "MemberStore",
    "NotificationGateway",
]
