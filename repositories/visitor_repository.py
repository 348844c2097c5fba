"""
Visitor repository (persistence).

Stores the Visitor aggregate in the Supabase `visitors` table. It does not enforce
workflow rules; it only loads rows and writes them back with an optimistic
`version` check so two writers cannot both succeed from the same version.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from postgrest.exceptions import APIError

from domain.visitor import Visitor, VisitorState
from repositories.client import get_supabase, raise_for_error
from repositories.interfaces import DuplicateVisitor, VersionConflict
from repositories.visitor_rows import row_to_visitor, visitor_to_row

# Supabase table name for visitor records.
# Keep this aligned with your database schema.
_VISITORS_TABLE: str = "visitors"

# PostgreSQL SQLSTATE for a primary/unique key collision
_UNIQUE_VIOLATION: str = "23505"


class SupabaseVisitorRepository:
    def __init__(self, client=None) -> None:
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def get(self, visitor_id: str) -> Optional[Visitor]:
        response = (
            self.client.table(_VISITORS_TABLE)
            .select("*")
            .eq("visitor_id", visitor_id)
            .limit(1)
            .execute()
        )
        rows = raise_for_error(response, "get visitor")
        if not rows:
            return None
        return row_to_visitor(rows[0])

    def insert(self, visitor: Visitor) -> Visitor:
        payload = visitor_to_row(visitor)
        payload["version"] = visitor.version
        try:
            response = self.client.table(_VISITORS_TABLE).insert(payload).execute()
        except APIError as e:
            if e.code == _UNIQUE_VIOLATION:
                raise DuplicateVisitor(visitor.visitor_id) from e
            raise RuntimeError(f"Failed to insert visitor: {e.message}") from e
        raise_for_error(response, "insert visitor")
        return visitor

    def save(self, visitor: Visitor, *, expected_version: int) -> Visitor:
        """
        Conditional update: matches only the row still at `expected_version`.

        PostgREST returns the updated rows; an empty result means the version moved
        (or the row vanished), which is reported as a VersionConflict.
        """

        payload = visitor_to_row(visitor)
        payload["version"] = expected_version + 1

        response = (
            self.client.table(_VISITORS_TABLE)
            .update(payload)
            .eq("visitor_id", visitor.visitor_id)
            .eq("version", expected_version)
            .execute()
        )
        rows = raise_for_error(response, "update visitor")
        if not rows:
            raise VersionConflict(visitor.visitor_id, expected_version)
        return row_to_visitor(rows[0])

    def list_by_states(self, states: Iterable[VisitorState]) -> List[Visitor]:
        wanted = [state.value for state in states]
        response = (
            self.client.table(_VISITORS_TABLE)
            .select("*")
            .in_("state", wanted)
            .order("created_at_utc")
            .execute()
        )
        rows = raise_for_error(response, "list visitors")
        return [row_to_visitor(row) for row in rows]


__all__ = ["SupabaseVisitorRepository"]
