"""
Domain: Members as seen by the visitor workflow.

The member roster is owned elsewhere. The workflow only needs to know whether a
caretaker resolves to an active member, and to describe the member record it
asks the roster to create at integration.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Member:
    """
    A member record from the external roster.

    source_visitor_id links a member back to the visitor it was integrated from,
    which is how a retried integration detects an already-created record.
    """

    member_id: str
    first_name: str
    last_name: str
    status: str  # active, inactive, transferred

    district_id: Optional[str] = None
    unit_id: Optional[str] = None
    source_visitor_id: Optional[str] = None

    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    def is_active(self) -> bool:
        """Only active members may act as caretakers."""
        return self.status == "active"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True, slots=True)
class NewMemberRequest:
    """Everything the roster needs to create a member from a visitor."""

    first_name: str
    last_name: str
    phone: str
    district_id: str
    source_visitor_id: str
    email: Optional[str] = None
    unit_id: Optional[str] = None
