from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from societyhub.auth.dependencies import get_current_user, get_document_store
from societyhub.database.memory_store import MemoryStore
from societyhub.database.store_factory import set_store
from societyhub.main import app
from societyhub.models.user import Identity

T0 = datetime(2025, 6, 1, tzinfo=timezone.utc)

VALID_COMPLAINT = {"title": "Leaking tap", "description": "Kitchen sink", "category": "plumbing", "priority": "low"}


@pytest.fixture
def api():
    store = MemoryStore()
    store.seed("users", "u1", {"name": "Asha", "role": "resident"})
    store.seed("users", "u2", {"name": "Ravi", "role": "user"})
    store.seed("users", "admin1", {"name": "Secretary", "role": "admin"})
    store.seed("complaints", "c1", {**VALID_COMPLAINT, "submittedBy": "u1", "createdAt": T0})
    store.seed("complaints", "c2", {**VALID_COMPLAINT, "title": "Lift stuck", "submittedBy": "u2", "createdAt": T0})

    current = {"identity": Identity(uid="u1", email="asha@example.com")}
    app.dependency_overrides[get_current_user] = lambda: current["identity"]
    app.dependency_overrides[get_document_store] = lambda: store

    def login(uid):
        current["identity"] = Identity(uid=uid)

    yield TestClient(app), store, login
    app.dependency_overrides.clear()


def test_resident_lists_only_own_complaints(api):
    client, _, _ = api

    response = client.get("/records/complaints")

    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 1
    assert body["items"][0]["id"] == "c1"


def test_admin_lists_all_complaints(api):
    client, _, login = api
    login("admin1")

    response = client.get("/records/complaints")

    assert response.status_code == 200
    assert {item["id"] for item in response.json()["items"]} == {"c1", "c2"}


def test_unknown_collection_is_404(api):
    client, _, _ = api
    assert client.get("/records/spaceships").status_code == 404


def test_permission_denied_maps_to_403(api):
    client, store, _ = api
    store.fail_collection("complaints")

    response = client.get("/records/complaints")

    assert response.status_code == 403
    assert response.json()["detail"]["type"] == "permission"


def test_get_other_residents_record_is_forbidden(api):
    client, _, _ = api
    assert client.get("/records/complaints/c1").status_code == 200
    assert client.get("/records/complaints/c2").status_code == 403
    assert client.get("/records/complaints/missing").status_code == 404


def test_create_invalid_complaint_returns_field_errors(api):
    client, store, _ = api

    response = client.post("/records/complaints", json={"title": "", "description": "x", "category": "", "priority": "low"})

    assert response.status_code == 422
    assert response.json()["detail"]["errors"] == {
        "title": "Title is required",
        "category": "Category is required",
    }
    assert store.write_calls == 0


def test_create_stamps_owner(api):
    client, store, _ = api

    response = client.post("/records/complaints", json={**VALID_COMPLAINT, "submittedBy": "someone_else"})

    assert response.status_code == 200
    created = response.json()["id"]
    doc = store._collections["complaints"][created]
    assert doc["submittedBy"] == "u1"
    assert isinstance(doc["createdAt"], datetime)


def test_resident_cannot_create_guard(api):
    client, _, _ = api
    response = client.post("/records/guards", json={"name": "Ramesh", "contact": "9876543210", "shift": "Night",
                                                    "status": "on_duty"})
    assert response.status_code == 403


def test_admin_creates_guard(api):
    client, store, login = api
    login("admin1")

    response = client.post("/records/guards", json={"name": "Ramesh", "contact": "9876543210", "shift": "Night",
                                                    "status": "on_duty"})

    assert response.status_code == 200
    assert store._collections["guards"][response.json()["id"]]["name"] == "Ramesh"


def test_owner_updates_own_record(api):
    client, store, _ = api

    response = client.patch("/records/complaints/c1", json={"priority": "high", "submittedBy": "u2"})

    assert response.status_code == 200
    doc = store._collections["complaints"]["c1"]
    assert doc["priority"] == "high"
    assert doc["submittedBy"] == "u1"


def test_update_is_validated(api):
    client, _, _ = api
    response = client.patch("/records/complaints/c1", json={"title": "  "})
    assert response.status_code == 422
    assert response.json()["detail"]["errors"] == {"title": "Title is required"}


def test_resident_cannot_update_others_record(api):
    client, _, _ = api
    assert client.patch("/records/complaints/c2", json={"priority": "high"}).status_code == 403


def test_legacy_user_role_acts_as_resident(api):
    client, _, login = api
    login("u2")

    assert client.patch("/records/complaints/c1", json={"priority": "high"}).status_code == 403
    assert client.delete("/records/complaints/c2").status_code == 200


def test_admin_deletes_any_record(api):
    client, store, login = api
    login("admin1")

    response = client.delete("/records/complaints/c1")

    assert response.status_code == 200
    assert "c1" not in store._collections["complaints"]


def test_vote_endpoint(api):
    client, store, _ = api
    store.seed("polls", "p1", {"question": "Repaint lobby?", "options": [{"text": "Yes", "votes": []},
                                                                         {"text": "No", "votes": []}]})

    first = client.post("/polls/p1/vote", json={"option_index": 0})
    second = client.post("/polls/p1/vote", json={"option_index": 1})

    assert first.status_code == 200
    assert first.json()["options"][0] == {"text": "Yes", "votes": 1, "percent": 100}
    assert second.status_code == 409
    assert client.post("/polls/missing/vote", json={"option_index": 0}).status_code == 404


def test_generate_next_bill_endpoint(api):
    client, store, _ = api
    store.seed("payments", "Jun2025_u1", {"month": "Jun 2025", "amount": 12000, "status": "Paid", "userId": "u1"})

    response = client.post("/billing/generate-next")

    assert response.status_code == 200
    assert response.json()["bill"]["id"] == "Jul2025_u1"
    assert "Jul2025_u1" in store._collections["payments"]


def test_resident_cannot_bill_someone_else(api):
    client, _, _ = api
    assert client.post("/billing/generate-next", params={"user_id": "u2"}).status_code == 403


def test_billing_summary(api):
    client, store, _ = api
    store.seed("payments", "May2025_u1", {"month": "May 2025", "amount": 12000, "status": "Paid", "userId": "u1"})
    store.seed("payments", "Jun2025_u1", {"month": "Jun 2025", "amount": 12000, "status": "Unpaid", "userId": "u1"})

    body = client.get("/billing/summary").json()

    assert body["bill_count"] == 2
    assert body["collection_rate"] == 50


def test_auto_generate_requires_admin(api):
    client, _, login = api
    assert client.post("/billing/auto-generate").status_code == 403

    login("admin1")
    assert client.post("/billing/auto-generate").status_code == 200


def test_health_reports_store():
    store = MemoryStore()
    set_store(store)
    try:
        body = TestClient(app).get("/health").json()
    finally:
        set_store(None)

    assert body["status"] == "healthy"
    assert body["store"] == "MemoryStore"
    assert body["active_subscriptions"] == 0
