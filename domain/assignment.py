"""
Domain: caretaker assignment.

A visitor has at most one active assignment. Reassignment replaces it; the
history of who was assigned when is an audit concern and is not kept here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Assignment:
    visitor_id: str
    assignee_id: str
    assigned_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("assigned_at", self.assigned_at)
        if not self.assignee_id:
            raise ValueError("assignee_id must not be empty")
