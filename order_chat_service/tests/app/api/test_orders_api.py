# API Tests for the Orders Router
import asyncio

from fastapi.testclient import TestClient

from order_chat_service.tests.fakes import FakeObjectStorage, bearer, seed_order


def _seed(order_store, **fields):
    return asyncio.run(seed_order(order_store, **fields))


# --- create and read ---

def test_create_order(client: TestClient, order_store):
    response = client.post("/api/v1/orders", headers=bearer("user-1"), json={
        "service_id": "svc-1",
        "documents": [{"document_name": "passport"}],
        "additional_fields": [{"field_name": "full_name", "field_value": "Asha Rao"}],
    })

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "pending"
    assert body["data"]["tracking_status"] == "Order Placed"
    assert len(body["data"]["status_history"]) == 1
    assert body["data"]["id"] in order_store.review


def test_create_order_without_token(client: TestClient):
    response = client.post("/api/v1/orders", json={"service_id": "svc-1"})
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "No token provided"}


def test_create_order_with_bad_field_names_it(client: TestClient):
    response = client.post("/api/v1/orders", headers=bearer("user-1"), json={
        "service_id": "svc-1",
        "additional_fields": [{"field_name": "category", "field_value": "vip"}],
    })
    assert response.status_code == 400
    assert "Full name" in response.json()["error"]


def test_create_order_malformed_body(client: TestClient):
    response = client.post("/api/v1/orders", headers=bearer("user-1"), json={"documents": []})
    assert response.status_code == 422
    assert response.json()["success"] is False
    assert response.json()["error"].startswith("service_id")


def test_review_reads_are_scoped(client: TestClient, order_store):
    mine = _seed(order_store, user_id="user-1")
    _seed(order_store, user_id="user-2")

    assert client.get("/api/v1/orders/my-orders", headers=bearer("user-1")).json()["data"]["total"] == 1
    assert client.get("/api/v1/orders/review", headers=bearer("admin-1", "app_admin")).json()["data"]["total"] == 2
    assert client.get(f"/api/v1/orders/review/{mine.id}", headers=bearer("user-2")).status_code == 403
    assert client.get("/api/v1/orders/review/missing", headers=bearer("user-1")).status_code == 404
    assert client.get("/api/v1/orders/review?limit=500", headers=bearer("user-1")).status_code == 422


# --- lifecycle ---

def test_start_and_complete_through_actions(client: TestClient, order_store):
    order = _seed(order_store)
    manager = bearer("admin-1", "app_admin")

    started = client.post(f"/api/v1/orders/{order.id}/actions", headers=manager, json={"action": "start_processing"})
    completed = client.post(f"/api/v1/orders/{order.id}/actions", headers=manager, json={"action": "complete_order"})
    history = client.get(f"/api/v1/orders/{order.id}/status-history", headers=bearer("user-1"))

    assert started.status_code == 200 and completed.status_code == 200
    assert completed.json()["data"]["tracking_status"] == "Ready for Review"
    assert [entry["status"] for entry in history.json()["data"]] == ["pending", "processing", "completed"]


def test_complete_before_start_is_rejected(client: TestClient, order_store):
    order = _seed(order_store)

    response = client.post(f"/api/v1/orders/{order.id}/actions", headers=bearer("admin-1", "app_admin"), json={"action": "complete_order"})

    assert response.status_code == 400
    assert "pending" in response.json()["error"]


def test_actions_forbidden_for_users_and_missing_for_unknown_orders(client: TestClient, order_store):
    order = _seed(order_store)

    assert client.post(f"/api/v1/orders/{order.id}/actions", headers=bearer("user-1"), json={"action": "start_processing"}).status_code == 403
    assert client.post("/api/v1/orders/missing/actions", headers=bearer("admin-1", "app_admin"), json={"action": "start_processing"}).status_code == 404


def test_patch_status_validation(client: TestClient, order_store):
    order = _seed(order_store)
    manager = bearer("admin-1", "super_admin")

    bad = client.patch(f"/api/v1/orders/{order.id}/status", headers=manager, json={"tracking_status": "Teleported"})
    good = client.patch(f"/api/v1/orders/{order.id}/status", headers=manager, json={"approve_status": "Enabled"})

    assert bad.status_code == 400
    assert "tracking status" in bad.json()["error"]
    assert good.status_code == 200
    assert good.json()["data"]["approve_status"] == "Enabled"
    assert len(good.json()["data"]["status_history"]) == 2


def test_ocr_update_all_or_nothing(client: TestClient, order_store):
    order = _seed(order_store)
    first = order.documents[0].id

    missing = client.put(f"/api/v1/orders/{order.id}/ocr", headers=bearer("user-1"), json={"updates": [
        {"document_id": first, "ocr_data": {"name": "A"}},
        {"document_id": "ghost", "ocr_data": {"name": "B"}},
    ]})
    empty = client.put(f"/api/v1/orders/{order.id}/ocr", headers=bearer("user-1"), json={"updates": []})

    assert missing.status_code == 404
    assert "ghost" in missing.json()["error"]
    assert order_store.review[order.id].documents[0].ocr_data == {"seed": 0}
    assert empty.status_code == 422


def test_document_file_upload(client: TestClient, order_store, object_storage):
    order = _seed(order_store)
    document_id = order.documents[0].id

    response = client.post(
        f"/api/v1/orders/{order.id}/documents/{document_id}/file",
        headers=bearer("user-1"),
        files={"file": ("scan.pdf", b"%PDF-1.7", "application/pdf")},
    )

    assert response.status_code == 200
    assert response.json()["data"]["documents"][0]["file_uploaded"] is True
    assert object_storage.puts[0]["filename"] == "scan.pdf"


def test_document_file_too_large(client: TestClient, order_store, object_storage):
    order = _seed(order_store)

    response = client.post(
        f"/api/v1/orders/{order.id}/documents/{order.documents[0].id}/file",
        headers=bearer("user-1"),
        files={"file": ("scan.pdf", b"0" * (5 * 1024 * 1024 + 1), "application/pdf")},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "File size exceeds 5MB limit"
    assert object_storage.puts == []


def test_storage_outage_is_reported_without_detail(client: TestClient, order_store, services):
    order = _seed(order_store)
    services.lifecycle.object_storage = FakeObjectStorage(fail=True)

    response = client.post(
        f"/api/v1/orders/{order.id}/documents/{order.documents[0].id}/file",
        headers=bearer("user-1"),
        files={"file": ("scan.pdf", b"%PDF", "application/pdf")},
    )

    assert response.status_code == 502
    assert response.json() == {"success": False, "error": "File upload failed"}


def test_unexpected_failure_is_a_generic_500(client: TestClient, order_store):
    order_store.fail_on["insert_review_order"] = RuntimeError("disk on fire")

    response = client.post("/api/v1/orders", headers=bearer("user-1"), json={
        "service_id": "svc-1",
        "additional_fields": [{"field_name": "full_name", "field_value": "A"}],
    })

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


# --- finalization ---

def test_approve_flow(client: TestClient, order_store):
    order = _seed(order_store)

    forbidden = client.post(f"/api/v1/orders/{order.id}/approve", headers=bearer("user-1"), json={"order_identifier": "PSP-1"})
    approved = client.post(f"/api/v1/orders/{order.id}/approve", headers=bearer("admin-1", "app_admin"), json={"order_identifier": "PSP-1"})
    again = client.post(f"/api/v1/orders/{order.id}/approve", headers=bearer("admin-1", "app_admin"), json={"order_identifier": "PSP-1"})

    assert forbidden.status_code == 403
    assert approved.status_code == 200
    assert approved.json()["data"]["tracking_status"] == "Approved"
    assert approved.json()["data"]["order_identifier"] == "PSP-1"
    assert again.status_code == 404
    assert order.id not in order_store.review


def test_owner_finalize_then_conflict(client: TestClient, order_store):
    order = _seed(order_store)

    first = client.post(f"/api/v1/orders/{order.id}/finalize", headers=bearer("user-1"))
    second = client.post(f"/api/v1/orders/{order.id}/finalize", headers=bearer("user-1"))
    by_admin = client.post(f"/api/v1/orders/{order.id}/finalize", headers=bearer("admin-1", "app_admin"))

    assert first.status_code == 200
    assert first.json()["message"] == "Order finalized successfully"
    assert first.json()["data"]["review_order"]["status"] == "finalized"
    assert second.status_code == 409
    assert by_admin.status_code == 403
    assert len(order_store.finalized) == 1

    finalized_id = first.json()["data"]["finalized_order"]["id"]
    assert client.get(f"/api/v1/orders/finalized/{finalized_id}", headers=bearer("user-1")).status_code == 200
    assert client.get("/api/v1/orders/finalized", headers=bearer("user-1")).json()["data"]["total"] == 1


def test_user_orders_overview_requires_manager(client: TestClient, order_store):
    _seed(order_store)
    assert client.get("/api/v1/orders/users/user-1", headers=bearer("user-1")).status_code == 403
    overview = client.get("/api/v1/orders/users/user-1", headers=bearer("admin-1", "senior_admin"))
    assert len(overview.json()["data"]["review_orders"]) == 1
