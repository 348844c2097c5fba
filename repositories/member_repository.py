"""
Member repository for the external member roster.

Provides the two narrow calls the visitor workflow consumes from the roster:
resolving an active caretaker and creating a member at integration (plus the
lookup that lets a retried integration find a record it already created).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from uuid import uuid4

from domain.member import Member, NewMemberRequest
from domain.time import parse_utc_datetime
from repositories.client import get_supabase, raise_for_error

_MEMBERS_TABLE: str = "members"


def _row_to_member(row: Mapping[str, Any]) -> Member:
    return Member(
        member_id=str(row["member_id"]),
        first_name=str(row.get("first_name") or ""),
        last_name=str(row.get("last_name") or ""),
        status=str(row.get("status") or "inactive"),
        district_id=row.get("district_id"),
        unit_id=row.get("unit_id"),
        source_visitor_id=row.get("source_visitor_id"),
        created_at=parse_utc_datetime(row["created_at_utc"]) if row.get("created_at_utc") else None,
    )


class SupabaseMemberRepository:
    """Implements both MemberDirectory and MemberStore over the `members` table."""

    def __init__(self, client=None) -> None:
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def get_member_by_id(self, member_id: str) -> Optional[Member]:
        response = (
            self.client.table(_MEMBERS_TABLE)
            .select("*")
            .eq("member_id", member_id)
            .limit(1)
            .execute()
        )
        rows = raise_for_error(response, "fetch member")
        return _row_to_member(rows[0]) if rows else None

    def resolve_active_member(self, member_id: str) -> Optional[Member]:
        member = self.get_member_by_id(member_id)
        if member is None or not member.is_active():
            return None
        return member

    def find_by_source_visitor(self, visitor_id: str) -> Optional[Member]:
        response = (
            self.client.table(_MEMBERS_TABLE)
            .select("*")
            .eq("source_visitor_id", visitor_id)
            .limit(1)
            .execute()
        )
        rows = raise_for_error(response, "look up member by source visitor")
        return _row_to_member(rows[0]) if rows else None

    def create_member(self, request: NewMemberRequest) -> str:
        member_id = str(uuid4())
        now = datetime.now(timezone.utc)

        payload: dict[str, Any] = {
            "member_id": member_id,
            "first_name": request.first_name,
            "last_name": request.last_name,
            "phone": request.phone,
            "email": request.email,
            "district_id": request.district_id,
            "unit_id": request.unit_id,
            "source_visitor_id": request.source_visitor_id,
            "status": "active",
            "created_at_utc": now.isoformat(),
        }

        response = self.client.table(_MEMBERS_TABLE).insert(payload).execute()
        raise_for_error(response, "create member")
        return member_id


__all__ = ["SupabaseMemberRepository"]
