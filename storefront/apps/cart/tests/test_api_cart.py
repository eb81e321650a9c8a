"""HTTP tests for the cart routes using FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient

from storefront.main import create_app

HEADERS = {"X-User-Id": "21"}


@pytest.fixture
def client(shop):
    return TestClient(create_app(shop))


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_request_id_is_echoed_or_generated(client):
    r = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_cart_flow(client):
    r = client.get("/api/cart", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["items"] == []

    r = client.post("/api/cart/items", json={"product_id": 2, "quantity": 2}, headers=HEADERS)
    assert r.status_code == 200
    body = r.json()
    assert body["items"] == [
        {"product_id": 2, "name": "Gadget", "quantity": 2, "unit_price_cents": 2000, "subtotal_cents": 4000}
    ]
    assert (body["total_cents"], body["total_items"]) == (4000, 2)

    r = client.put("/api/cart/items/2", json={"quantity": 5}, headers=HEADERS)
    assert r.json()["items"][0]["quantity"] == 5

    r = client.delete("/api/cart/items/2", headers=HEADERS)
    assert r.json()["items"] == []

    client.post("/api/cart/items", json={"product_id": 1}, headers=HEADERS)
    r = client.delete("/api/cart", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["items"] == []


def test_cart_errors_map_to_status_codes(client):
    r = client.post("/api/cart/items", json={"product_id": 1, "quantity": 0}, headers=HEADERS)
    assert (r.status_code, r.json()["detail"]) == (422, "INVALID_QUANTITY")

    r = client.post("/api/cart/items", json={"product_id": 4}, headers=HEADERS)
    assert (r.status_code, r.json()["detail"]) == (422, "PRODUCT_UNAVAILABLE")
    assert r.json()["product_id"] == 4

    r = client.put("/api/cart/items/3", json={"quantity": 1}, headers=HEADERS)
    assert (r.status_code, r.json()["detail"]) == (404, "ITEM_NOT_FOUND")

    r = client.delete("/api/cart/items/3", headers=HEADERS)
    assert r.status_code == 404


def test_user_header_is_required(client):
    assert client.get("/api/cart").status_code == 422
