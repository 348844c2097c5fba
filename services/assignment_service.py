"""
Assignment registry: who is currently caring for a visitor.

The registry validates caretakers against the member directory and answers
"who is assigned". It never writes the visitor; the lifecycle service persists
the assignment it returns as part of an Assign/Reassign transition.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from domain.assignment import Assignment
from domain.errors import UnknownAssignee, VisitorNotFound
from repositories.interfaces import MemberDirectory, VisitorRepository

logger = logging.getLogger(__name__)


class AssignmentRegistry:
    def __init__(self, directory: MemberDirectory, visitors: VisitorRepository) -> None:
        self._directory = directory
        self._visitors = visitors

    def assign(self, visitor_id: str, assignee_id: str, *, at: datetime) -> Assignment:
        """
        Build the active assignment that replaces any existing one.

        Raises:
            UnknownAssignee: the assignee is blank, unknown, or not an active member.
        """

        assignee_id = (assignee_id or "").strip()
        if not assignee_id or self._directory.resolve_active_member(assignee_id) is None:
            logger.warning(
                "Rejected assignment to unknown or inactive member",
                extra={"visitor_id": visitor_id, "assignee_id": assignee_id},
            )
            raise UnknownAssignee(assignee_id)
        return Assignment(visitor_id=visitor_id, assignee_id=assignee_id, assigned_at=at)

    def current(self, visitor_id: str) -> Optional[Assignment]:
        """The active assignment, or None when the visitor is unassigned."""

        visitor = self._visitors.get(visitor_id)
        if visitor is None:
            raise VisitorNotFound(visitor_id)
        return visitor.assignment


__all__ = ["AssignmentRegistry"]
