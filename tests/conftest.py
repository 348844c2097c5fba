"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so tests can import domain, repositories,
services and api, and wires a lifecycle service over the in-memory repositories.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.member import Member  # noqa: E402
from domain.visitor import VisitorProfile  # noqa: E402
from repositories.memory import (  # noqa: E402
    InMemoryMemberRepository,
    InMemoryNotificationGateway,
    InMemoryVisitorRepository,
)
from services.assignment_service import AssignmentRegistry  # noqa: E402
from services.integration_service import IntegrationBridge  # noqa: E402
from services.notification_service import NotificationDispatcher  # noqa: E402
from services.visitor_lifecycle_service import VisitorLifecycleService  # noqa: E402

T0 = datetime(2025, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock: each call returns a time one minute after the last."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(minutes=1)
        return self.now


def make_profile(first_name: str = "Ada", last_name: str = "Okafor") -> VisitorProfile:
    return VisitorProfile(
        first_name=first_name,
        last_name=last_name,
        phone="+2348012345678",
        date_of_visit=T0,
        email="ada@example.com",
        service_type="Sunday Service",
    )


def phone_follow_up(contacted_by: str = "caretaker-1", **overrides) -> dict:
    payload = {
        "date": "2025-03-04T18:30:00Z",
        "method": "phone",
        "outcome": "interested",
        "contacted_by": contacted_by,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def visitors() -> InMemoryVisitorRepository:
    return InMemoryVisitorRepository()


@pytest.fixture
def members() -> InMemoryMemberRepository:
    return InMemoryMemberRepository(
        [
            Member(member_id="caretaker-1", first_name="Grace", last_name="Bello", status="active"),
            Member(member_id="caretaker-2", first_name="Tunde", last_name="Ade", status="active"),
            Member(member_id="retired-1", first_name="Old", last_name="Hand", status="inactive"),
        ]
    )


@pytest.fixture
def gateway() -> InMemoryNotificationGateway:
    return InMemoryNotificationGateway()


@pytest.fixture
def dispatcher(gateway):
    dispatcher = NotificationDispatcher(gateway, timeout_seconds=2.0)
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture
def service(visitors, members, dispatcher, clock) -> VisitorLifecycleService:
    return VisitorLifecycleService(
        visitors,
        AssignmentRegistry(members, visitors),
        IntegrationBridge(members),
        dispatcher,
        clock=clock,
    )


@pytest.fixture
def new_visitor(service) -> str:
    return service.register_visitor(make_profile(), visitor_id="visitor-1").visitor_id


@pytest.fixture
def engaged_visitor(service, new_visitor) -> str:
    service.assign(new_visitor, "caretaker-1")
    return new_visitor


@pytest.fixture
def qualified_visitor(service, engaged_visitor) -> str:
    """Engaged, assigned, with exactly one follow-up."""
    service.add_follow_up(engaged_visitor, phone_follow_up())
    return engaged_visitor


@pytest.fixture
def ready_visitor(service, qualified_visitor) -> str:
    service.mark_ready(qualified_visitor)
    return qualified_visitor
