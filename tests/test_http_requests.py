from sqlalchemy import select

from app.labtrack.db.models import AuditEvent
from tests.labtrack_helpers import ADMIN_ACTOR, MANAGER_ACTOR, auth_headers, create_ordered_request_http, line_item


def test_create_and_get_request(client):
    response = client.post(
        "/labtrack/requests",
        headers=auth_headers(),
        json={"vendor_id": "vendor-1", "project_codes": ["P-7"], "items": [line_item(quantity=3, unit_price=4.5)]},
    )
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "Pending"
    assert created["items"][0]["received_qty"] == 0
    assert created["items"][0]["remaining_qty"] == 3
    assert created["items"][0]["unit_price"] == 4.5
    assert created["fully_received"] is False

    fetched = client.get(f"/labtrack/requests/{created['id']}", headers=auth_headers())
    assert fetched.status_code == 200
    assert fetched.json()["request_number"] == created["request_number"]

    listed = client.get("/labtrack/requests", headers=auth_headers(), params={"status": "Pending"})
    assert [row["id"] for row in listed.json()["rows"]] == [created["id"]]


def test_create_request_validation(client):
    response = client.post(
        "/labtrack/requests",
        headers=auth_headers(),
        json={"vendor_id": "vendor-1", "items": [line_item(quantity=0)]},
    )
    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "VALIDATION_ERROR"
    assert payload["details"]["errors"][0]["field"] == "items.0.quantity"


def test_unknown_request_returns_not_found(client):
    response = client.get("/labtrack/requests/does-not-exist", headers=auth_headers())
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_invalid_transition_envelope(client):
    created = client.post(
        "/labtrack/requests", headers=auth_headers(), json={"vendor_id": "vendor-1", "items": [line_item()]}
    ).json()

    response = client.post(
        f"/labtrack/requests/{created['id']}/status",
        headers=auth_headers(MANAGER_ACTOR),
        json={"status": "Ordered"},
    )

    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "INVALID_TRANSITION"
    assert payload["details"]["from"] == "Pending"
    assert payload["details"]["to"] == "Ordered"


def test_override_requires_role(client):
    created = create_ordered_request_http(client, [line_item()])

    denied = client.post(
        f"/labtrack/requests/{created['id']}/status",
        headers=auth_headers(),
        json={"status": "Received", "override": True},
    )
    assert denied.status_code == 403
    assert denied.json()["code"] == "PERMISSION_DENIED"

    allowed = client.post(
        f"/labtrack/requests/{created['id']}/status",
        headers=auth_headers(ADMIN_ACTOR),
        json={"status": "Received", "override": True},
    )
    assert allowed.status_code == 200
    assert allowed.json()["status"] == "Received"
    assert allowed.json()["warnings"]


def test_status_change_is_audited(client, db_session):
    created = create_ordered_request_http(client, [line_item()])

    events = db_session.execute(
        select(AuditEvent).where(AuditEvent.entity_id == created["id"]).order_by(AuditEvent.created_at)
    ).scalars().all()

    actions = [event.action for event in events]
    assert actions[0] == "request.create"
    assert "request.status.transition" in actions
    assert actions[-1] == "request.purchase_order.record"


def test_patch_request_and_line_item(client):
    created = client.post(
        "/labtrack/requests", headers=auth_headers(), json={"vendor_id": "vendor-1", "items": [line_item()]}
    ).json()

    patched = client.patch(f"/labtrack/requests/{created['id']}", headers=auth_headers(), json={"notes": "rush"})
    assert patched.status_code == 200
    assert patched.json()["notes"] == "rush"

    item_id = created["items"][0]["id"]
    patched_item = client.patch(
        f"/labtrack/requests/{created['id']}/items/{item_id}",
        headers=auth_headers(),
        json={"quantity": 12, "link": "https://vendor.example/tf-200"},
    )
    assert patched_item.status_code == 200
    assert patched_item.json()["items"][0]["quantity"] == 12
    assert patched_item.json()["items"][0]["link"] == "https://vendor.example/tf-200"


def test_merge_requests_endpoint(client, db_session):
    source = client.post(
        "/labtrack/requests", headers=auth_headers(), json={"vendor_id": "vendor-1", "items": [line_item()]}
    ).json()
    target = client.post(
        "/labtrack/requests",
        headers=auth_headers(),
        json={"vendor_id": "vendor-1", "items": [line_item(catalog_number="TF-1000")]},
    ).json()

    response = client.post(
        f"/labtrack/requests/{source['id']}/merge", headers=auth_headers(), json={"target_request_id": target["id"]}
    )

    assert response.status_code == 200
    assert response.json()["id"] == target["id"]
    assert [item["catalog_number"] for item in response.json()["items"]] == ["TF-1000", "TF-200"]
    assert client.get(f"/labtrack/requests/{source['id']}", headers=auth_headers()).status_code == 404
    event = db_session.execute(select(AuditEvent).where(AuditEvent.action == "request.merge")).scalars().one()
    assert event.entity_id == source["id"]


def test_reorder_from_inventory_endpoint(client):
    ordered = create_ordered_request_http(client, [line_item(quantity=3)])
    client.post(
        f"/labtrack/requests/{ordered['id']}/receipts",
        headers=auth_headers(),
        json={"items": [{"line_item_id": ordered["items"][0]["id"], "quantity": 3}]},
    )
    record = client.get("/labtrack/inventory", headers=auth_headers()).json()["rows"][0]

    response = client.post(
        "/labtrack/requests/reorder",
        headers=auth_headers(),
        json={"vendor_id": "vendor-1", "inventory_record_ids": [record["id"]]},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "Pending"
    assert body["id"] != ordered["id"]
    assert [(item["catalog_number"], item["quantity"]) for item in body["items"]] == [("TF-200", 3)]

    empty = client.post(
        "/labtrack/requests/reorder", headers=auth_headers(), json={"vendor_id": "vendor-1", "inventory_record_ids": []}
    )
    assert empty.status_code == 422
