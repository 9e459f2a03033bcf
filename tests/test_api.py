"""Tests for API endpoints"""
import json
from decimal import Decimal
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from storefront.app import app
from storefront.cart import CartService, RulesPromotionResolver
from storefront.routers import deps

HEADERS = {"X-Session-Id": "session-abc"}

SHIRT = {"id": "p1", "name": "Linen Shirt", "price": 1000, "stock": 10}


@pytest.fixture
def client(resolver):
    """Test client with in-memory carts and local promo rules"""
    deps.reset_cart_services()
    deps.set_promotion_resolver(resolver)
    yield TestClient(app)
    deps.reset_cart_services()
    deps.set_promotion_resolver(None)


def test_health_check(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_session_header_required(client):
    response = client.get("/api/cart")
    assert response.status_code == 400


def test_empty_cart(client):
    response = client.get("/api/cart", headers=HEADERS)

    assert response.status_code == 200
    cart = response.json()["cart"]
    assert cart["items"] == []
    assert cart["total"] == 0


def test_checkout_flow(client):
    response = client.post(
        "/api/cart/items",
        json={"product": SHIRT, "quantity": 2, "size": "M", "color": "red"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["cart"]["subtotal"] == 2000.0
    assert body["notifications"] == [{"level": "success", "message": "Linen Shirt added to cart!"}]

    response = client.post("/api/cart/promo/apply", json={"code": "save10"}, headers=HEADERS)
    assert response.status_code == 200
    cart = response.json()["cart"]
    assert cart["discount"] == 200.0
    assert cart["shipping_cost"] == 300.0
    assert cart["tax"] == 288.0
    assert cart["total"] == 2388.0

    response = client.put("/api/cart/shipping", json={"method": "express"}, headers=HEADERS)
    assert response.json()["cart"]["shipping_cost"] == 500.0

    response = client.post("/api/cart/promo/remove", headers=HEADERS)
    assert response.json()["cart"]["applied_promotion"] is None


def test_zero_discount_price_means_no_discount(client):
    product = {"id": "p9", "name": "Canvas Tote", "price": 450, "discount_price": 0}

    response = client.post("/api/cart/items", json={"product": product, "quantity": 2}, headers=HEADERS)

    assert response.status_code == 200
    cart = response.json()["cart"]
    assert cart["subtotal"] == 900.0
    assert cart["items"][0]["discounted_unit_price"] is None


def test_carts_are_isolated_per_session(client):
    client.post("/api/cart/items", json={"product": SHIRT}, headers=HEADERS)

    response = client.get("/api/cart", headers={"X-Session-Id": "someone-else"})

    assert response.json()["cart"]["items"] == []


def test_update_and_remove(client):
    client.post("/api/cart/items", json={"product": SHIRT, "quantity": 1}, headers=HEADERS)

    response = client.patch("/api/cart/items", json={"product_id": "p1", "quantity": 3}, headers=HEADERS)
    assert response.json()["cart"]["total_quantity"] == 3

    response = client.patch("/api/cart/items", json={"product_id": "p1", "quantity": 0}, headers=HEADERS)
    assert response.json()["cart"]["items"] == []

    client.post("/api/cart/items", json={"product": SHIRT}, headers=HEADERS)
    response = client.delete("/api/cart/items", params={"product_id": "p1"}, headers=HEADERS)
    assert response.json()["cart"]["items"] == []


def test_clear(client):
    client.post("/api/cart/items", json={"product": SHIRT, "quantity": 4}, headers=HEADERS)

    response = client.delete("/api/cart/clear", headers=HEADERS)

    assert response.json()["cart"]["total_quantity"] == 0


def test_invalid_quantity(client):
    response = client.post("/api/cart/items", json={"product": SHIRT, "quantity": 0}, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["detail"] == "Quantity must be a positive integer"


def test_invalid_shipping_method(client):
    response = client.put("/api/cart/shipping", json={"method": "drone"}, headers=HEADERS)

    assert response.status_code == 400


def test_rejected_promo(client):
    client.post("/api/cart/items", json={"product": SHIRT}, headers=HEADERS)

    response = client.post("/api/cart/promo/apply", json={"code": "MIN3000"}, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["detail"] == "Minimum order of 3000 required for this promo code"
    assert client.get("/api/cart", headers=HEADERS).json()["cart"]["applied_promotion"] is None


class TestSessionRegistry:

    def test_session_cache_evicts_least_recently_used(self):
        cache = deps.SessionCache(2)
        cache["a"] = 1
        cache["b"] = 2
        cache["a"] = 1
        cache["c"] = 3

        assert list(cache) == ["a", "c"]

    def test_cart_services_are_bounded(self, client, monkeypatch):
        monkeypatch.setattr(deps, "_cart_services", deps.SessionCache(2))

        first = deps.get_cart_service_for("s1")
        deps.get_cart_service_for("s2")
        deps.get_cart_service_for("s3")

        assert len(deps._cart_services) == 2
        assert "s1" not in deps._cart_services
        assert deps.get_cart_service_for("s1") is not first

    def test_cached_service_rereads_store(self, client, sample_product):
        client.get("/api/cart", headers=HEADERS)

        # Another worker writes the same session's cart
        other_worker = CartService(store=deps.build_cart_store("session-abc"), notifier=Mock())
        other_worker.add_item(sample_product, 2)

        response = client.get("/api/cart", headers=HEADERS)
        assert response.json()["cart"]["total_quantity"] == 2


class TestPromotionSource:

    def test_rules_file(self, tmp_path, monkeypatch):
        rules_file = tmp_path / "promos.json"
        rules_file.write_text(json.dumps([{"code": "WELCOME", "type": "fixed", "value": "250"}]))
        monkeypatch.setattr(deps, "PROMOTIONS_API_URL", "")
        monkeypatch.setattr(deps, "PROMOTIONS_RULES_FILE", str(rules_file))
        deps.set_promotion_resolver(None)

        resolver = deps.get_promotion_resolver()

        assert isinstance(resolver, RulesPromotionResolver)
        assert resolver.get_rule("welcome").value == Decimal("250")
        deps.set_promotion_resolver(None)

    def test_no_source_rejects_codes(self, monkeypatch):
        monkeypatch.setattr(deps, "PROMOTIONS_API_URL", "")
        monkeypatch.setattr(deps, "PROMOTIONS_RULES_FILE", "")
        deps.set_promotion_resolver(None)

        resolver = deps.get_promotion_resolver()

        assert isinstance(resolver, RulesPromotionResolver)
        assert resolver.get_rule("SAVE10") is None
        deps.set_promotion_resolver(None)
