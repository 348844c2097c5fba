"""
In-memory repositories.

Process-local stand-ins for the Supabase tables, used when
VISITOR_STORE_BACKEND=memory (local development) and by the test suite. They honour
the same contracts as the Supabase implementations, including the optimistic
version check on save.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from domain.member import Member, NewMemberRequest
from domain.visitor import Visitor, VisitorState
from repositories.interfaces import DuplicateVisitor, VersionConflict


class InMemoryVisitorRepository:
    """
    Thread-safe dict of visitors keyed by id.

    `on_get` runs after every successful `get`, outside the internal lock. Tests use
    it to force an interleaving between a read and the following write.
    """

    def __init__(self, on_get: Optional[Callable[[Visitor], None]] = None) -> None:
        self._visitors: Dict[str, Visitor] = {}
        self._lock = threading.Lock()
        self.on_get = on_get

    def get(self, visitor_id: str) -> Optional[Visitor]:
        with self._lock:
            visitor = self._visitors.get(visitor_id)
        if visitor is not None and self.on_get is not None:
            self.on_get(visitor)
        return visitor

    def insert(self, visitor: Visitor) -> Visitor:
        with self._lock:
            if visitor.visitor_id in self._visitors:
                raise DuplicateVisitor(visitor.visitor_id)
            self._visitors[visitor.visitor_id] = visitor
        return visitor

    def save(self, visitor: Visitor, *, expected_version: int) -> Visitor:
        with self._lock:
            current = self._visitors.get(visitor.visitor_id)
            if current is None or current.version != expected_version:
                raise VersionConflict(visitor.visitor_id, expected_version)
            stored = replace(visitor, version=expected_version + 1)
            self._visitors[visitor.visitor_id] = stored
        return stored

    def list_by_states(self, states: Iterable[VisitorState]) -> List[Visitor]:
        wanted = set(states)
        with self._lock:
            visitors = [v for v in self._visitors.values() if v.state in wanted]
        return sorted(visitors, key=lambda v: v.created_at)


class InMemoryMemberRepository:
    """Member roster stand-in: directory lookups plus member creation."""

    def __init__(self, members: Iterable[Member] = ()) -> None:
        self._members: Dict[str, Member] = {m.member_id: m for m in members}
        self._lock = threading.Lock()
        self.created: List[NewMemberRequest] = []

    def add_member(self, member: Member) -> Member:
        with self._lock:
            self._members[member.member_id] = member
        return member

    def resolve_active_member(self, member_id: str) -> Optional[Member]:
        with self._lock:
            member = self._members.get(member_id)
        if member is None or not member.is_active():
            return None
        return member

    def find_by_source_visitor(self, visitor_id: str) -> Optional[Member]:
        with self._lock:
            for member in self._members.values():
                if member.source_visitor_id == visitor_id:
                    return member
        return None

    def create_member(self, request: NewMemberRequest) -> str:
        member = Member(
            member_id=str(uuid4()),
            first_name=request.first_name,
            last_name=request.last_name,
            status="active",
            district_id=request.district_id,
            unit_id=request.unit_id,
            source_visitor_id=request.source_visitor_id,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._members[member.member_id] = member
            self.created.append(request)
        return member.member_id


class InMemoryNotificationGateway:
    """Records every sent notification as (event, visitor_id)."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def send(self, event: str, visitor_id: str) -> None:
        with self._lock:
            self.sent.append((event, visitor_id))


__all__ = [
    "InMemoryVisitorRepository",
    "InMemoryMemberRepository",
    "InMemoryNotificationGateway",
]
