"""
API tests with FastAPI's TestClient.

The store and dispatcher dependencies are overridden with an in-memory store
so the full request path (routing, validation, error mapping, background
assignment) runs without Supabase.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_dispatcher, get_store
from api.main import app
from domain.lead import NewLead
from domain.profile import ProfileRole
from repositories.memory_store import InMemoryRotationStore
from services.assignment_dispatcher import AssignmentDispatcher

LEAD_PAYLOAD = {
    "name": "Maria Souza",
    "email": "maria.souza@gmail.com",
    "phone": "+55 11 99999-0000",
    "location_interest": "Centro",
}


@pytest.fixture
def dispatcher(store):
    return AssignmentDispatcher(store, sleep=lambda s: None)


@pytest.fixture
def client(store, dispatcher):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_submit_lead_is_assigned_in_background(client, enrolled_broker) -> None:
    broker = enrolled_broker()

    response = client.post("/api/v1/leads", json=LEAD_PAYLOAD)

    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "pending"

    fetched = client.get(f"/api/v1/leads/{created['lead_id']}").json()
    assert fetched["status"] == "assigned"
    assert fetched["handled_by"] == str(broker)


def test_submit_lead_without_brokers_still_succeeds(client, dispatcher) -> None:
    response = client.post("/api/v1/leads", json=LEAD_PAYLOAD)

    assert response.status_code == 201
    lead_id = response.json()["lead_id"]
    assert client.get(f"/api/v1/leads/{lead_id}").json()["status"] == "pending"
    assert dispatcher.failures == []


def test_submit_lead_validates_email(client) -> None:
    response = client.post("/api/v1/leads", json=dict(LEAD_PAYLOAD, email="not-an-email"))
    assert response.status_code == 422


def test_list_leads_filters_and_rejects_bad_status(client, submit) -> None:
    submit("first")
    submit("second")

    listed = client.get("/api/v1/leads", params={"status": "pending"}).json()
    assert listed["total_count"] == 2
    assert [item["name"] for item in listed["items"]] == ["second", "first"]

    assert client.get("/api/v1/leads", params={"status": "bogus"}).status_code == 400


def test_get_unknown_lead_is_404(client) -> None:
    assert client.get(f"/api/v1/leads/{uuid4()}").status_code == 404


def test_explicit_assign_outcomes(client, enrolled_broker, submit) -> None:
    lead = submit()

    no_broker = client.post(f"/api/v1/leads/{lead.lead_id}/assign")
    assert no_broker.status_code == 200
    assert no_broker.json()["outcome"] == "no_eligible_broker"
    assert no_broker.json()["ledger_entry"] is None
    assert no_broker.json()["lead"]["status"] == "pending"

    broker = enrolled_broker()
    assigned = client.post(f"/api/v1/leads/{lead.lead_id}/assign")
    assert assigned.status_code == 200
    body = assigned.json()
    assert body["outcome"] == "assigned"
    assert body["lead"]["handled_by"] == str(broker)
    assert body["ledger_entry"]["broker_id"] == str(broker)

    again = client.post(f"/api/v1/leads/{lead.lead_id}/assign")
    assert again.status_code == 409
    assert again.json()["detail"].startswith("already_assigned")

    history = client.get(f"/api/v1/leads/{lead.lead_id}/distribution").json()
    assert len(history) == 1


def test_assign_unknown_lead_is_404(client) -> None:
    assert client.post(f"/api/v1/leads/{uuid4()}/assign").status_code == 404


def test_assign_under_contention_is_503_with_retry_after(clock) -> None:
    slow = InMemoryRotationStore(lock_timeout_seconds=0.05, clock=clock)
    lead = slow.create_lead(NewLead(name="Maria", email="maria@example.com", phone="123"))
    app.dependency_overrides[get_store] = lambda: slow
    try:
        slow._roster_lock.acquire()
        try:
            response = TestClient(app).post(f"/api/v1/leads/{lead.lead_id}/assign")
        finally:
            slow._roster_lock.release()
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"


def test_patch_lead_updates_follow_up_fields(client, enrolled_broker, submit) -> None:
    enrolled_broker()
    lead = submit()
    client.post(f"/api/v1/leads/{lead.lead_id}/assign")

    response = client.patch(
        f"/api/v1/leads/{lead.lead_id}",
        json={"status": "contacted", "observations": "Called in the morning"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "contacted"
    assert response.json()["observations"] == "Called in the morning"


def test_patch_lead_rejects_engine_owned_fields(client, enrolled_broker, submit) -> None:
    broker = enrolled_broker()
    lead = submit()
    client.post(f"/api/v1/leads/{lead.lead_id}/assign")

    response = client.patch(f"/api/v1/leads/{lead.lead_id}", json={"handled_by": str(uuid4())})

    assert response.status_code == 422
    assert "handled_by" in response.json()["detail"]
    assert client.get(f"/api/v1/leads/{lead.lead_id}").json()["handled_by"] == str(broker)


@pytest.mark.parametrize("payload", [{"status": "assigned"}, {"status": "bogus"}, {"email": "x@y.z"}])
def test_patch_lead_rejects_invalid_updates(client, submit, payload) -> None:
    lead = submit()
    assert client.patch(f"/api/v1/leads/{lead.lead_id}", json=payload).status_code == 422


def test_patch_unknown_lead_is_404(client) -> None:
    response = client.patch(f"/api/v1/leads/{uuid4()}", json={"observations": "x"})
    assert response.status_code == 404


def test_patch_status_on_pending_lead_is_409_and_lead_stays_in_sweep(client, enrolled_broker, submit) -> None:
    lead = submit()

    response = client.patch(f"/api/v1/leads/{lead.lead_id}", json={"status": "contacted"})

    assert response.status_code == 409
    assert client.get(f"/api/v1/leads/{lead.lead_id}").json()["status"] == "pending"

    broker = enrolled_broker()
    body = client.post("/api/v1/leads/assign-pending").json()

    assert body["assigned"] == [str(lead.lead_id)]
    assert client.get(f"/api/v1/leads/{lead.lead_id}").json()["handled_by"] == str(broker)


def test_assign_pending_sweep(client, enrolled_broker, submit) -> None:
    first = submit("first")
    second = submit("second")
    enrolled_broker()

    body = client.post("/api/v1/leads/assign-pending").json()

    assert body["examined"] == 2
    assert body["assigned"] == [str(first.lead_id), str(second.lead_id)]
    assert body["no_eligible_broker"] is False


def test_broker_order_lifecycle(client, add_profile) -> None:
    ana = add_profile("Ana")
    bruno = add_profile("Bruno")

    created = client.post(f"/api/v1/broker-order/{ana}")
    assert created.status_code == 201
    assert created.json()["order_position"] == 1
    assert created.json()["broker"]["full_name"] == "Ana"
    client.post(f"/api/v1/broker-order/{bruno}")

    duplicate = client.post(f"/api/v1/broker-order/{ana}")
    assert duplicate.status_code == 409

    listing = client.get("/api/v1/broker-order").json()
    assert [row["broker"]["full_name"] for row in listing] == ["Ana", "Bruno"]

    ids = {row["broker_id"]: row["id"] for row in listing}
    reorder = client.patch(
        "/api/v1/broker-order",
        json={
            "orders": [
                {"id": ids[str(bruno)], "orderPosition": 1},
                {"id": ids[str(ana)], "orderPosition": 2},
                {"id": 9999, "orderPosition": 3},
            ]
        },
    )
    assert reorder.status_code == 200
    assert reorder.json() == {
        "success": True,
        "applied": [ids[str(bruno)], ids[str(ana)]],
        "skipped": [9999],
    }
    listing = client.get("/api/v1/broker-order").json()
    assert [row["broker"]["full_name"] for row in listing] == ["Bruno", "Ana"]

    disabled = client.delete(f"/api/v1/broker-order/{bruno}")
    assert disabled.status_code == 200
    assert disabled.json()["is_active"] is False


def test_enroll_errors(client, add_profile) -> None:
    assert client.post(f"/api/v1/broker-order/{uuid4()}").status_code == 404

    customer = add_profile("Client", role=ProfileRole.CLIENT)
    assert client.post(f"/api/v1/broker-order/{customer}").status_code == 422

    assert client.delete(f"/api/v1/broker-order/{customer}").status_code == 404


def test_promote_and_distribution_summary(client, add_profile, submit) -> None:
    user = add_profile("Joana", role=ProfileRole.CLIENT)

    promoted = client.post(f"/api/v1/admin/promote/{user}")
    assert promoted.status_code == 200
    assert promoted.json()["profile"]["role"] == "broker"
    assert promoted.json()["roster_entry"]["is_active"] is True

    lead = submit()
    client.post(f"/api/v1/leads/{lead.lead_id}/assign")

    summary = client.get("/api/v1/distribution/summary").json()
    assert summary["total_assignments"] == 1
    assert summary["spread"] == 0
    assert summary["brokers"][0]["ledger_count"] == 1

    history = client.get(f"/api/v1/broker-order/{user}/distribution").json()
    assert [entry["lead_id"] for entry in history] == [str(lead.lead_id)]


def test_failures_endpoint_lists_dispatcher_failures(client, dispatcher) -> None:
    dispatcher.run(uuid4())

    failures = client.get("/api/v1/distribution/failures").json()

    assert len(failures) == 1
    assert failures[0]["retryable"] is False
