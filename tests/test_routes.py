import pytest
from fastapi.testclient import TestClient

from seedshop.core_settings import Settings
from seedshop.main import create_app


def order_body(product_id, quantity=3, **overrides):
    body = {
        "customer_first_name": "Sipho",
        "customer_last_name": "Ndlovu",
        "customer_email": "sipho@example.com",
        "customer_phone": "0825550199",
        "shipping_address": "4 Mill Street",
        "shipping_city": "Bloemfontein",
        "shipping_postal_code": "9301",
        "shipping_province": "Free State",
        "shipping_cost": 50,
        "items": [
            {"product_id": product_id, "product_name": "Hybrid Maize Seed 2kg", "quantity": quantity, "price": 12.5}
        ],
    }
    body.update(overrides)
    return body


@pytest.fixture
def settings(database):
    return Settings(DATABASE_URL=database.url, RUN_MIGRATIONS=False, ENVIRONMENT="test", LOG_LEVEL="WARNING")


@pytest.fixture
def client(settings, database):
    app = create_app(settings=settings, database=database)
    with TestClient(app) as test_client:
        yield test_client


class TestCreateOrder:
    def test_created(self, client, add_product, stock_of):
        product_id = add_product(stock=5)
        resp = client.post("/orders", json=order_body(product_id))

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Order created successfully"
        assert "timestamp" in body
        order = body["data"]
        assert order["total"] == 87.5
        assert order["status"] == "pending"
        assert order["items"][0]["quantity"] == 3
        assert stock_of(product_id) == 2

    def test_validation_errors_are_listed(self, client):
        resp = client.post("/orders", json=order_body(1, items=[], customer_email="nope"))

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert "Order must contain at least one item" in body["error"]
        assert "Valid customer email is required" in body["error"]
        assert "data" not in body

    def test_null_fields_are_reported_with_the_rest(self, client):
        body = order_body(1, items=[], customer_first_name=None, customer_phone=None, shipping_city=None)
        resp = client.post("/orders", json=body)

        assert resp.status_code == 400
        errors = resp.json()["error"]
        assert "Customer first name is required" in errors
        assert "Order must contain at least one item" in errors

    def test_type_errors_are_bad_requests(self, client):
        body = order_body(1)
        body["items"][0]["quantity"] = "lots"
        resp = client.post("/orders", json=body)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Validation failed"

    def test_insufficient_stock(self, client, add_product, stock_of):
        product_id = add_product(stock=5)
        resp = client.post("/orders", json=order_body(product_id, quantity=10))

        assert resp.status_code == 500
        body = resp.json()
        assert body["message"] == "Insufficient stock"
        assert f"product ID {product_id}" in body["error"]
        assert stock_of(product_id) == 5
        assert client.get("/orders").json()["data"] == []

    def test_duplicate_order_number(self, client, add_product):
        product_id = add_product(stock=5)
        assert client.post("/orders", json=order_body(product_id, 1, order_number="ORD-9-001")).status_code == 201
        resp = client.post("/orders", json=order_body(product_id, 1, order_number="ORD-9-001"))
        assert resp.status_code == 409

    def test_request_id_is_echoed(self, client, add_product):
        resp = client.get("/orders", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"


class TestReadOrders:
    def test_get_order(self, client, add_product):
        created = client.post("/orders", json=order_body(add_product(stock=5))).json()["data"]
        resp = client.get(f"/orders/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"] == created

    def test_not_found(self, client):
        resp = client.get("/orders/4242")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Order not found", "timestamp": resp.json()["timestamp"]}

    def test_bad_id(self, client):
        assert client.get("/orders/abc").status_code == 400

    def test_by_number_status_and_customer(self, client, add_product):
        product_id = add_product(stock=5)
        client.post("/orders", json=order_body(product_id, 1, order_number="ORD-5-005"))

        assert client.get("/orders/number/ORD-5-005").json()["data"]["order_number"] == "ORD-5-005"
        assert client.get("/orders/number/ORD-0-000").status_code == 404
        assert len(client.get("/orders/status/pending").json()["data"]) == 1
        assert client.get("/orders/status/lost").status_code == 400
        assert len(client.get("/orders/customer", params={"email": "sipho@example.com"}).json()["data"]) == 1
        assert client.get("/orders/customer").status_code == 400

    def test_generate_number(self, client):
        resp = client.get("/orders/generate-number")
        assert resp.status_code == 200
        assert resp.json()["data"]["order_number"].startswith("ORD-")

    def test_statistics(self, client, add_product):
        client.post("/orders", json=order_body(add_product(stock=5), 2))
        resp = client.get("/orders/statistics")
        assert resp.status_code == 200
        stats = resp.json()["data"]
        assert stats["total_orders"] == 1
        assert stats["total_revenue"] == 75.0
        assert stats["pending_orders"] == 1


class TestUpdateOrder:
    def test_replace(self, client, add_product):
        product_id = add_product(stock=10)
        created = client.post("/orders", json=order_body(product_id, 1)).json()["data"]

        resp = client.put(f"/orders/{created['id']}", json=order_body(product_id, 4, shipping_cost=0))
        assert resp.status_code == 200
        assert resp.json()["data"]["total"] == 50.0
        assert resp.json()["data"]["order_number"] == created["order_number"]

    def test_replace_unknown(self, client, add_product):
        resp = client.put("/orders/999", json=order_body(add_product()))
        assert resp.status_code == 404

    def test_status(self, client, add_product):
        created = client.post("/orders", json=order_body(add_product(stock=5), 1)).json()["data"]
        resp = client.put(f"/orders/{created['id']}/status", json={"status": "Processing"})
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "processing"

    def test_bad_status(self, client, add_product):
        created = client.post("/orders", json=order_body(add_product(stock=5), 1)).json()["data"]
        resp = client.put(f"/orders/{created['id']}/status", json={"status": "lost"})
        assert resp.status_code == 400

    def test_status_unknown_order(self, client):
        assert client.put("/orders/999/status", json={"status": "shipped"}).status_code == 404


class TestDeleteOrder:
    def test_delete_restocks(self, client, add_product, stock_of):
        product_id = add_product(stock=5)
        created = client.post("/orders", json=order_body(product_id, 3)).json()["data"]

        resp = client.delete(f"/orders/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"] == {"order_id": created["id"]}
        assert stock_of(product_id) == 5
        assert client.get(f"/orders/{created['id']}").status_code == 404

    def test_shipped_orders_cannot_be_deleted(self, client, add_product, stock_of):
        product_id = add_product(stock=5)
        created = client.post("/orders", json=order_body(product_id, 3)).json()["data"]
        client.put(f"/orders/{created['id']}/status", json={"status": "shipped"})

        resp = client.delete(f"/orders/{created['id']}")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot delete shipped or delivered orders"
        assert stock_of(product_id) == 2

    def test_delete_unknown(self, client):
        assert client.delete("/orders/31337").status_code == 404


def test_internal_errors_hidden_in_production(database, add_product):
    settings = Settings(DATABASE_URL=database.url, RUN_MIGRATIONS=False, ENVIRONMENT="production")
    product_id = add_product(stock=1)
    with TestClient(create_app(settings=settings, database=database)) as client:
        resp = client.post("/orders", json=order_body(product_id, 5))
    assert resp.status_code == 500
    assert "error" not in resp.json()
