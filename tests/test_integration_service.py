"""
Tests for `services/integration_service.py` and the Integrate transition.

Covers contract rules:
- District is required; unit is optional.
- A failed member-store call leaves the visitor ReadyForIntegration.
- Retrying after an ambiguous failure reuses the member record instead of duplicating it.
"""

from __future__ import annotations

import pytest

from domain.errors import DistrictRequired, DownstreamUnavailable, InvalidInput, InvalidTransition
from domain.member import Member
from domain.visitor import ClosedOutcome, VisitorState
from repositories.memory import InMemoryMemberRepository


class FlakyMemberStore(InMemoryMemberRepository):
    """
    Creates the member, then reports a failure (the write landed but the reply was
    lost), `failures` times in a row.
    """

    def __init__(self, members=(), failures=1, lands=True):
        super().__init__(members)
        self.failures = failures
        self.lands = lands

    def create_member(self, request):
        if self.failures > 0:
            self.failures -= 1
            if self.lands:
                super().create_member(request)
            raise TimeoutError("member store timed out")
        return super().create_member(request)


@pytest.fixture
def members():
    return FlakyMemberStore(
        [Member(member_id="caretaker-1", first_name="Grace", last_name="Bello", status="active")],
        failures=0,
    )


class TestDistrict:
    @pytest.mark.parametrize("district_id", [None, "", "   "])
    def test_district_is_required(self, service, ready_visitor, members, district_id):
        with pytest.raises(DistrictRequired) as exc_info:
            service.integrate(ready_visitor, district_id)

        assert isinstance(exc_info.value, InvalidInput)
        assert members.created == []
        assert service.get_visitor(ready_visitor).state == VisitorState.READY_FOR_INTEGRATION

    def test_unit_is_optional_and_passed_through(self, service, ready_visitor, members):
        service.integrate(ready_visitor, "d1", unit_id="u7")

        assert members.created[0].unit_id == "u7"

    def test_transition_is_checked_before_district(self, service, qualified_visitor):
        with pytest.raises(InvalidTransition):
            service.integrate(qualified_visitor, None)


class TestDownstreamFailure:
    def test_failure_leaves_visitor_ready(self, service, ready_visitor, members):
        members.failures = 1
        members.lands = False

        with pytest.raises(DownstreamUnavailable):
            service.integrate(ready_visitor, "d1")

        snapshot = service.get_visitor(ready_visitor)
        assert snapshot.state == VisitorState.READY_FOR_INTEGRATION
        assert snapshot.converted is False
        assert snapshot.member_record_ref is None

    def test_retry_reuses_member_created_by_lost_reply(self, service, ready_visitor, members):
        members.failures = 1
        members.lands = True

        with pytest.raises(DownstreamUnavailable):
            service.integrate(ready_visitor, "d1")
        assert len(members.created) == 1

        result = service.integrate(ready_visitor, "d1")

        assert len(members.created) == 1
        linked = members.find_by_source_visitor(ready_visitor)
        assert result.visitor.member_record_ref == linked.member_id
        assert result.visitor.closed_outcome == ClosedOutcome.MEMBER

    def test_lookup_failure_is_downstream_unavailable(self, service, ready_visitor, members):
        def broken(visitor_id):
            raise ConnectionError("connection reset")

        members.find_by_source_visitor = broken

        with pytest.raises(DownstreamUnavailable) as exc_info:
            service.integrate(ready_visitor, "d1")

        assert exc_info.value.code == "downstream_unavailable"
        assert service.get_visitor(ready_visitor).state == VisitorState.READY_FOR_INTEGRATION


class TestRecheck:
    def test_recheck_completes_pending_integration(self, service, ready_visitor, members):
        members.failures = 1
        members.lands = True
        with pytest.raises(DownstreamUnavailable):
            service.integrate(ready_visitor, "d1")

        result = service.recheck_integration(ready_visitor)

        assert result is not None
        assert result.visitor.state == VisitorState.CLOSED
        assert result.visitor.converted is True
        assert len(members.created) == 1

    def test_recheck_without_member_does_nothing(self, service, ready_visitor, members):
        assert service.recheck_integration(ready_visitor) is None

        assert members.created == []
        snapshot = service.get_visitor(ready_visitor)
        assert snapshot.state == VisitorState.READY_FOR_INTEGRATION
        assert snapshot.version == 3

    def test_recheck_on_closed_visitor_is_invalid(self, service, ready_visitor):
        service.integrate(ready_visitor, "d1")

        with pytest.raises(InvalidTransition):
            service.recheck_integration(ready_visitor)
