import pytest
from fastapi.testclient import TestClient

from snackhub.app.main import create_app
from snackhub.services.loader import load_bundle

from conftest import SEED_COMPANY_ID

PENDING_REQ = "nz2p1larko8dcbyr7ej08v98"
ADMIN = "usr00000000000000000admin"


@pytest.fixture
def client(store, bundle, settings):
    with store.session() as s, s.begin():
        load_bundle(s, bundle, seed_company_id=SEED_COMPANY_ID)

    with TestClient(create_app(store=store, settings=settings)) as c:
        yield c


def test_health(client):
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_list_filters_by_status(client):
    r = client.get("/v1/order-requests", params={"status": "PENDING"})

    assert r.status_code == 200
    assert [row["id"] for row in r.json()] == [PENDING_REQ]
    assert r.json()[0]["total_amount"] == 3500


def test_add_and_remove_item(client):
    r = client.post(
        f"/v1/order-requests/{PENDING_REQ}/items",
        json={"product_id": "prd0000000000000000000003", "quantity": 2},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["total_amount"] == 3500 + 1400
    added = next(i for i in body["items"] if i["product_id"] == "prd0000000000000000000003")

    r = client.delete(f"/v1/order-requests/{PENDING_REQ}/items/{added['id']}")
    assert r.status_code == 200
    assert r.json()["total_amount"] == 3500


def test_duplicate_item_conflicts(client):
    r = client.post(
        f"/v1/order-requests/{PENDING_REQ}/items",
        json={"product_id": "prd0000000000000000000001", "quantity": 1},
    )
    assert r.status_code == 409


def test_approve_then_complete_order(client):
    r = client.post(f"/v1/order-requests/{PENDING_REQ}/approve", json={"resolver_id": ADMIN})
    assert r.status_code == 200
    order = r.json()
    assert order["status"] == "PENDING"
    assert order["total_amount"] == 3500
    assert len(order["items"]) == 2

    r = client.post(f"/v1/orders/{order['id']}/status", json={"status": "PROCESSING"})
    assert r.status_code == 200
    assert r.json()["status"] == "PROCESSING"

    r = client.post(f"/v1/orders/{order['id']}/status", json={"status": "PENDING"})
    assert r.status_code == 409

    r = client.post(f"/v1/order-requests/{PENDING_REQ}/approve", json={"resolver_id": ADMIN})
    assert r.status_code == 409


def test_reject_requires_notes(client):
    r = client.post(f"/v1/order-requests/{PENDING_REQ}/reject", json={"resolver_id": ADMIN})
    assert r.status_code == 422

    r = client.post(f"/v1/order-requests/{PENDING_REQ}/reject", json={"resolver_id": ADMIN, "notes": "예산 초과"})
    assert r.status_code == 200
    assert r.json()["status"] == "REJECTED"


def test_unknown_ids_are_404(client):
    assert client.get("/v1/order-requests/nope").status_code == 404
    assert client.get("/v1/orders/nope").status_code == 404
    r = client.post("/v1/orders/nope/status", json={"status": "CANCELLED"})
    assert r.status_code == 404
