"""
API tests for the visitor endpoints.

The lifecycle service is swapped for one over the in-memory repositories via
`app.dependency_overrides`, so no Supabase credentials are needed.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_lifecycle_service
from api.main import app
from conftest import phone_follow_up

BASE = "/api/v1/visitors"


@pytest.fixture
def client(service):
    app.dependency_overrides[get_lifecycle_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def registered(client):
    response = client.post(
        BASE,
        json={
            "visitor_id": "visitor-1",
            "first_name": "Ada",
            "last_name": "Okafor",
            "phone": "+2348012345678",
            "date_of_visit": "2025-03-02T09:00:00Z",
        },
    )
    assert response.status_code == 201
    return response.json()["visitor_id"]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_register_returns_new_visitor(client, registered):
    body = client.get(f"{BASE}/{registered}").json()

    assert body["state"] == "new"
    assert body["full_name"] == "Ada Okafor"
    assert body["follow_ups"] == []
    assert body["archived"] is False
    assert body["converted"] is False
    assert body["available_events"] == ["assign"]


def test_register_rejects_blank_name(client):
    response = client.post(
        BASE,
        json={"first_name": " ", "last_name": "Okafor", "phone": "1", "date_of_visit": "2025-03-02T09:00:00Z"},
    )

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_input"


def test_full_journey(client, registered):
    assert client.post(f"{BASE}/{registered}/assign", json={"assignee_id": "caretaker-1"}).status_code == 200

    logged = client.post(f"{BASE}/{registered}/follow-ups", json=phone_follow_up())
    assert logged.status_code == 200
    assert logged.json()["visitor"]["follow_up_count"] == 1

    ready = client.post(f"{BASE}/{registered}/mark-ready")
    assert ready.status_code == 200
    assert ready.json()["visitor"]["state"] == "ready_for_integration"
    assert ready.json()["notification"] == "delivered"

    queue = client.get(f"{BASE}/ready-for-integration").json()
    assert [item["visitor_id"] for item in queue["items"]] == [registered]

    integrated = client.post(f"{BASE}/{registered}/integrate", json={"district_id": "d1"})
    assert integrated.status_code == 200
    visitor = integrated.json()["visitor"]
    assert visitor["state"] == "closed"
    assert visitor["closed_outcome"] == "member"
    assert visitor["converted"] is True

    stats = client.get(f"{BASE}/stats").json()
    assert stats["by_state"]["closed"] == 1
    assert stats["converted"] == 1


def test_unknown_visitor_is_404(client):
    response = client.get(f"{BASE}/ghost")

    assert response.status_code == 404
    assert response.json()["error"] == "visitor_not_found"


def test_invalid_transition_is_409(client, registered):
    response = client.post(f"{BASE}/{registered}/mark-ready")

    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"


def test_guard_failure_lists_unmet_conditions(client, registered):
    client.post(f"{BASE}/{registered}/assign", json={"assignee_id": "caretaker-1"})

    response = client.post(f"{BASE}/{registered}/close", json={"reason": "moved away"})

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "guard_not_satisfied"
    assert body["unmet_conditions"] == ["log at least one follow-up first"]
    assert client.get(f"{BASE}/{registered}").json()["state"] == "engaged"


def test_unknown_assignee_is_422(client, registered):
    response = client.post(f"{BASE}/{registered}/assign", json={"assignee_id": "nobody"})

    assert response.status_code == 422
    assert response.json()["error"] == "unknown_assignee"


def test_incomplete_follow_up_reports_every_field(client, registered):
    client.post(f"{BASE}/{registered}/assign", json={"assignee_id": "caretaker-1"})

    response = client.post(f"{BASE}/{registered}/follow-ups", json={"notes": "left a voicemail"})

    assert response.status_code == 422
    detail = response.json()["detail"]
    for field in ("date", "method", "outcome", "contacted_by"):
        assert f"{field} is required" in detail


def test_integrate_without_district_is_422(client, registered):
    client.post(f"{BASE}/{registered}/assign", json={"assignee_id": "caretaker-1"})
    client.post(f"{BASE}/{registered}/follow-ups", json=phone_follow_up())
    client.post(f"{BASE}/{registered}/mark-ready")

    response = client.post(f"{BASE}/{registered}/integrate", json={})

    assert response.status_code == 422
    assert response.json()["error"] == "district_required"


def test_archive_and_restore_without_body(client, registered):
    client.post(f"{BASE}/{registered}/assign", json={"assignee_id": "caretaker-1"})

    archived = client.post(f"{BASE}/{registered}/archive")
    assert archived.status_code == 200
    assert archived.json()["visitor"]["archived"] is True

    restored = client.post(f"{BASE}/{registered}/restore")
    assert restored.json()["visitor"]["state"] == "engaged"
    assert restored.json()["visitor"]["assigned_to"] == "caretaker-1"


def test_recheck_without_member(client, registered):
    client.post(f"{BASE}/{registered}/assign", json={"assignee_id": "caretaker-1"})
    client.post(f"{BASE}/{registered}/follow-ups", json=phone_follow_up())
    client.post(f"{BASE}/{registered}/mark-ready")

    response = client.post(f"{BASE}/{registered}/integration/recheck")

    assert response.status_code == 200
    assert response.json()["completed"] is False


def test_bulk_assign(client, registered):
    response = client.post(
        f"{BASE}/bulk-assign",
        json={"visitor_ids": [registered, "ghost"], "assignee_id": "caretaker-2"},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["assigned"] == [registered]
    assert list(body["failures"]) == ["ghost"]
    assert body["items_requested"] == 2


def test_duplicate_visitor_id_is_409(client, registered):
    response = client.post(
        BASE,
        json={
            "visitor_id": registered,
            "first_name": "Bola",
            "last_name": "Ade",
            "phone": "+2348000000000",
            "date_of_visit": "2025-03-09T09:00:00Z",
        },
    )

    assert response.status_code == 409
    assert response.json()["error"] == "visitor_already_exists"


def test_error_responses_are_documented(client):
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    responses = schema["paths"]["/api/v1/visitors/{visitor_id}/mark-ready"]["post"]["responses"]
    assert {"404", "409", "422"} <= set(responses)
