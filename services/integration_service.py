"""
Integration bridge: turns a visitor into a member record.

Handles:
- District requirement (unit optional)
- Re-check for a member record that already links back to the visitor, so a retry
  after an ambiguous failure never creates a duplicate
- Wrapping member-store failures as DownstreamUnavailable

The bridge never touches visitor state. The lifecycle service applies the
Integrate transition only after `member_for` returns a confirmed member id.
"""

from __future__ import annotations

import logging
from typing import Optional

from domain.errors import DistrictRequired, DownstreamUnavailable
from domain.member import Member, NewMemberRequest
from domain.visitor import Visitor
from repositories.interfaces import MemberStore

logger = logging.getLogger(__name__)

_SERVICE_NAME = "member store"


class IntegrationBridge:
    def __init__(self, members: MemberStore) -> None:
        self._members = members

    def find_existing(self, visitor: Visitor) -> Optional[Member]:
        """Member record already created from this visitor, if any."""

        try:
            return self._members.find_by_source_visitor(visitor.visitor_id)
        except Exception as exc:
            logger.error(
                "Member lookup failed during integration re-check",
                extra={"visitor_id": visitor.visitor_id},
                exc_info=True,
            )
            raise DownstreamUnavailable(_SERVICE_NAME, str(exc)) from exc

    def member_for(self, visitor: Visitor, district_id: Optional[str], unit_id: Optional[str] = None) -> str:
        """
        Return the id of the member record for `visitor`, creating it if needed.

        Raises:
            DistrictRequired: district_id is missing or blank.
            DownstreamUnavailable: the member store failed or timed out. Whether a
                record was created is unknown; a later re-check will find it.
        """

        district_id = (district_id or "").strip()
        if not district_id:
            raise DistrictRequired()
        unit_id = (unit_id or "").strip() or None

        existing = self.find_existing(visitor)
        if existing is not None:
            logger.info(
                "Reusing member record already linked to visitor",
                extra={"visitor_id": visitor.visitor_id, "member_id": existing.member_id},
            )
            return existing.member_id

        profile = visitor.profile
        request = NewMemberRequest(
            first_name=profile.first_name,
            last_name=profile.last_name,
            phone=profile.phone,
            email=profile.email,
            district_id=district_id,
            unit_id=unit_id,
            source_visitor_id=visitor.visitor_id,
        )

        try:
            member_id = self._members.create_member(request)
        except Exception as exc:
            logger.error(
                "Member creation failed; visitor stays ready for integration",
                extra={"visitor_id": visitor.visitor_id, "district_id": district_id},
                exc_info=True,
            )
            raise DownstreamUnavailable(_SERVICE_NAME, str(exc)) from exc

        logger.info(
            "Created member record from visitor",
            extra={"visitor_id": visitor.visitor_id, "member_id": member_id, "district_id": district_id},
        )
        return member_id


__all__ = ["IntegrationBridge"]
