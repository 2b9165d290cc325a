"""Integration tests for the HTTP endpoints."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from grocery.api import ROUTERS, install_error_handlers
from grocery.catalogue.product import Product
from protean.utils.globals import current_domain


@pytest.fixture()
def client():
    app = FastAPI()
    for router in ROUTERS:
        app.include_router(router)
    install_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def kiwi(client):
    response = client.post(
        "/products",
        json={"name": "Kiwi", "price": 38.0, "initial_stock": 10.0, "low_stock_threshold": 2.0},
    )
    assert response.status_code == 201
    return response.json()["id"]


def _checkout(client, product_id, quantity=5.0, customer_id="cust-001", coupon_code=None):
    return client.post(
        "/orders",
        json={
            "customer_id": customer_id,
            "lines": [{"product_id": product_id, "quantity": quantity, "unit_price": 38.0}],
            "requested_delivery_at": (datetime.now(UTC) + timedelta(hours=3)).isoformat(),
            "coupon_code": coupon_code,
        },
    )


class TestProductEndpoints:
    def test_get_product(self, client, kiwi):
        response = client.get(f"/products/{kiwi}")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Kiwi"
        assert data["stock_quantity"] == 10.0
        assert data["effective_price"] == 38.0

    def test_restock(self, client, kiwi):
        response = client.post(f"/products/{kiwi}/restock", json={"quantity": 2.5})
        assert response.status_code == 200
        assert response.json()["stock_quantity"] == 12.5

    def test_update_keeps_stock(self, client, kiwi):
        response = client.put(f"/products/{kiwi}", json={"price": 40.0})
        assert response.status_code == 200

        product = current_domain.repository_for(Product).get(kiwi)
        assert product.price == 40.0
        assert product.stock_quantity == 10.0

    def test_unknown_product_is_404(self, client):
        assert client.get("/products/nope").status_code == 404

    def test_list_products_by_type(self, client, kiwi):
        client.post(
            "/products",
            json={
                "name": "Carrot",
                "product_type": "vegetable",
                "price": 12.0,
                "initial_stock": 4.0,
                "low_stock_threshold": 1.0,
            },
        )
        client.put(f"/products/{kiwi}", json={"product_type": "fruit"})

        fruit = client.get("/products", params={"type": "fruit"}).json()

        assert [p["name"] for p in fruit] == ["Kiwi"]
        assert fruit[0]["product_type"] == "fruit"
        assert len(client.get("/products").json()) == 2

    def test_unknown_product_type_is_400(self, client):
        response = client.post(
            "/products",
            json={"name": "Tofu", "product_type": "dairy", "price": 9.0, "initial_stock": 1.0},
        )
        assert response.status_code == 400
        assert "product_type" in response.json()["messages"]

    def test_remove_product(self, client, kiwi):
        response = client.delete(f"/products/{kiwi}")

        assert response.status_code == 200
        assert client.get(f"/products/{kiwi}").status_code == 404

    def test_product_on_open_order_cannot_be_removed(self, client, kiwi):
        _checkout(client, kiwi)

        response = client.delete(f"/products/{kiwi}")

        assert response.status_code == 400
        assert "product_id" in response.json()["messages"]


class TestOrderLifecycleEndpoints:
    def test_checkout_claim_deliver(self, client, kiwi):
        response = _checkout(client, kiwi)
        assert response.status_code == 201
        order = response.json()
        assert order["status"] == "NEW"
        assert order["subtotal"] == 190.0
        assert order["vat_total"] == 34.2
        assert order["total"] == 224.2
        assert [line["line_total"] for line in order["lines"]] == [190.0]

        order_id = order["order_id"]
        available = client.get("/orders/available").json()
        assert [o["order_id"] for o in available] == [order_id]

        claimed = client.put(f"/orders/{order_id}/claim", json={"carrier_id": "car-7"})
        assert claimed.status_code == 200
        assert claimed.json()["status"] == "IN_PROGRESS"

        delivered = client.put(
            f"/orders/{order_id}/deliver",
            json={"carrier_id": "car-7", "delivered_at": datetime.now(UTC).isoformat()},
        )
        assert delivered.status_code == 200
        assert delivered.json()["status"] == "DELIVERED"

        history = client.get(f"/orders/{order_id}/history").json()
        assert [entry["status"] for entry in history] == ["DELIVERED", "IN_PROGRESS", "NEW"]

        loyalty = client.get("/customers/cust-001/loyalty").json()
        assert loyalty["points"] == 22

        carrier_orders = client.get("/carriers/car-7/orders", params={"status": "DELIVERED"}).json()
        assert [o["order_id"] for o in carrier_orders] == [order_id]

    def test_insufficient_stock_is_409(self, client, kiwi):
        response = _checkout(client, kiwi, quantity=11.0)
        assert response.status_code == 409
        assert response.json()["error"] == "InsufficientStock"

    def test_below_minimum_is_400(self, client, kiwi):
        response = _checkout(client, kiwi, quantity=1.0)
        assert response.status_code == 400
        assert "total" in response.json()["messages"]

    def test_second_claim_is_409(self, client, kiwi):
        order_id = _checkout(client, kiwi).json()["order_id"]
        client.put(f"/orders/{order_id}/claim", json={"carrier_id": "car-7"})

        response = client.put(f"/orders/{order_id}/claim", json={"carrier_id": "car-8"})

        assert response.status_code == 409
        assert response.json()["error"] == "OrderAlreadyClaimed"

    def test_wrong_carrier_cannot_deliver(self, client, kiwi):
        order_id = _checkout(client, kiwi).json()["order_id"]
        client.put(f"/orders/{order_id}/claim", json={"carrier_id": "car-7"})

        response = client.put(
            f"/orders/{order_id}/deliver",
            json={"carrier_id": "car-8", "delivered_at": datetime.now(UTC).isoformat()},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "UnauthorizedActor"

    def test_cancel_restores_stock(self, client, kiwi):
        order_id = _checkout(client, kiwi).json()["order_id"]

        response = client.put(f"/orders/{order_id}/cancel", json={"customer_id": "cust-001", "reason": "Wrong item"})

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["cancel_reason"] == "Wrong item"
        assert client.get(f"/products/{kiwi}").json()["stock_quantity"] == 10.0

    def test_customer_orders(self, client, kiwi):
        order_id = _checkout(client, kiwi).json()["order_id"]
        orders = client.get("/customers/cust-001/orders").json()
        assert [o["order_id"] for o in orders] == [order_id]

    def test_claim_many(self, client, kiwi):
        first = _checkout(client, kiwi, quantity=3.0).json()["order_id"]
        second = _checkout(client, kiwi, quantity=3.0, customer_id="cust-002").json()["order_id"]
        client.put(f"/orders/{second}/claim", json={"carrier_id": "car-8"})

        response = client.put("/orders/claim", json={"carrier_id": "car-7", "order_ids": [first, second, "ghost"]})

        assert response.status_code == 200
        assert response.json() == {"claimed": 1}
        assert client.get(f"/orders/{first}").json()["carrier_id"] == "car-7"
        assert client.get(f"/orders/{second}").json()["carrier_id"] == "car-8"

    def test_claim_many_needs_orders(self, client):
        response = client.put("/orders/claim", json={"carrier_id": "car-7", "order_ids": []})
        assert response.status_code == 422

    def test_stock_contention_is_409(self, client, kiwi, monkeypatch):
        repo_cls = type(current_domain.repository_for(Product))
        monkeypatch.setattr(repo_cls, "compare_and_set_stock", lambda self, *args: False)

        response = _checkout(client, kiwi)

        assert response.status_code == 409
        assert response.json()["error"] == "StockContention"
        assert client.get(f"/products/{kiwi}").json()["stock_quantity"] == 10.0


class TestCouponEndpoints:
    def test_coupon_applied_at_checkout(self, client, kiwi):
        created = client.post("/coupons", json={"code": "save10", "discount_percent": 10, "max_uses": 5})
        assert created.status_code == 201
        assert created.json()["code"] == "SAVE10"

        order = _checkout(client, kiwi, coupon_code="SAVE10").json()

        assert order["coupon_code"] == "SAVE10"
        assert order["discount_total"] == 19.0

    def test_deactivated_coupon_is_ignored(self, client, kiwi):
        client.post("/coupons", json={"code": "SAVE10", "discount_percent": 10, "max_uses": 5})
        assert client.put("/coupons/SAVE10/deactivate").status_code == 200

        order = _checkout(client, kiwi, coupon_code="SAVE10").json()

        assert order["coupon_code"] is None
        assert order["discount_total"] == 0.0

    def test_duplicate_code_is_400(self, client):
        client.post("/coupons", json={"code": "SAVE10", "discount_percent": 10, "max_uses": 5})
        response = client.post("/coupons", json={"code": "SAVE10", "discount_amount": 5, "max_uses": 1})
        assert response.status_code == 400


class TestAlertEndpoints:
    def test_checkout_raises_alert_and_owner_reads_it(self, client, kiwi):
        _checkout(client, kiwi, quantity=8.5)

        alerts = client.get("/alerts").json()
        assert len(alerts) == 1
        assert alerts[0]["title"] == "Low Stock Alert!"
        assert alerts[0]["message"] == "Kiwi stock has fallen to 1.5 kg (Threshold: 2 kg)"

        assert client.put(f"/alerts/{alerts[0]['alert_id']}/read").status_code == 200
        assert client.get("/alerts").json() == []
        assert len(client.get("/alerts", params={"unread": False}).json()) == 1


class TestAccountEndpoints:
    def test_register_and_lookup(self, client):
        response = client.post("/accounts", json={"username": "Dana", "role": "CARRIER"})
        assert response.status_code == 201

        account = client.get("/accounts/dana").json()
        assert account["role"] == "CARRIER"
        assert account["dashboard"] == "/deliveries"

    def test_unknown_account_is_404(self, client):
        assert client.get("/accounts/ghost").status_code == 404


class TestCarrierRatingEndpoints:
    def _delivered(self, client, product_id, carrier_id="car-7", customer_id="cust-001"):
        order_id = _checkout(client, product_id, quantity=3.0, customer_id=customer_id).json()["order_id"]
        client.put(f"/orders/{order_id}/claim", json={"carrier_id": carrier_id})
        client.put(
            f"/orders/{order_id}/deliver",
            json={"carrier_id": carrier_id, "delivered_at": datetime.now(UTC).isoformat()},
        )
        return order_id

    def test_rate_and_read_back(self, client, kiwi):
        order_id = self._delivered(client, kiwi)

        response = client.post(f"/orders/{order_id}/rating", json={"customer_id": "cust-001", "rating": 4})

        assert response.status_code == 201
        assert client.get("/carriers/car-7/rating").json() == {
            "carrier_id": "car-7",
            "average_rating": 4.0,
            "rating_count": 1,
        }

    def test_second_rating_is_409(self, client, kiwi):
        order_id = self._delivered(client, kiwi)
        client.post(f"/orders/{order_id}/rating", json={"customer_id": "cust-001", "rating": 4})

        response = client.post(f"/orders/{order_id}/rating", json={"customer_id": "cust-001", "rating": 1})

        assert response.status_code == 409
        assert response.json()["error"] == "AlreadyRated"

    def test_rating_out_of_range_is_422(self, client, kiwi):
        order_id = self._delivered(client, kiwi)
        response = client.post(f"/orders/{order_id}/rating", json={"customer_id": "cust-001", "rating": 9})
        assert response.status_code == 422

    def test_ratings_leaderboard(self, client, kiwi):
        for carrier_id, rating in (("car-7", 3), ("car-8", 5)):
            order_id = self._delivered(client, kiwi, carrier_id=carrier_id)
            client.post(f"/orders/{order_id}/rating", json={"customer_id": "cust-001", "rating": rating})

        board = client.get("/carriers/ratings").json()

        assert [(row["carrier_id"], row["average_rating"]) for row in board] == [("car-8", 5.0), ("car-7", 3.0)]

    def test_unrated_carrier_scores_zero(self, client):
        assert client.get("/carriers/car-1/rating").json()["rating_count"] == 0
