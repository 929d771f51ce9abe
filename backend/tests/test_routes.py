"""
HTTP surface.

Verifies:
- Checkout endpoints are public; back-office endpoints need the identity header
- Business errors map to 400 / 404 / 409 with a readable message
- The identity header value is the audit actor
"""

import pytest

from storefront.models import AuditLogEntry


# =============================================================================
# BACK OFFICE REQUIRES IDENTITY (401)
# =============================================================================


class TestAdminIdentity:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("PATCH", "/api/admin/orders/update-status"),
            ("POST", "/api/admin/stock-inbound"),
            ("GET", "/api/admin/stock-inbound"),
            ("PATCH", "/api/admin/inventory/adjust"),
            ("POST", "/api/admin/products"),
            ("GET", "/api/admin/products"),
            ("GET", "/api/admin/orders"),
        ],
    )
    def test_requires_identity(self, client, db_session, method, path):
        resp = client.open(path, method=method, json={})
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json() == {"success": False, "message": "Authentication required"}

    def test_blank_identity_rejected(self, client, db_session):
        resp = client.get("/api/admin/products", headers={"X-Authenticated-User": "   "})
        assert resp.status_code == 401

    def test_custom_header_name(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "ADMIN_IDENTITY_HEADER", "X-Forwarded-User")
        resp = client.get("/api/admin/products", headers={"X-Forwarded-User": "ops"})
        assert resp.status_code == 200


# =============================================================================
# CHECKOUT
# =============================================================================


class TestCheckout:
    def test_place_order(self, client, db_session, customer, product_a, stock_of):
        resp = client.post("/api/orders", json={
            "customer": customer,
            "items": [{"product_id": product_a.id, "quantity": 3}],
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        assert body["total_amount"] == "300.00"
        assert body["order_code"] == f"ORD-{body['order_id']:06d}"
        assert stock_of(product_a.id) == 2

    def test_place_order_validation(self, client, db_session, product_a):
        resp = client.post("/api/orders", json={
            "customer": {"name": "An", "phone": "0901234567", "address": ""},
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Please enter a delivery address"

    def test_place_order_shortfall(self, client, db_session, customer, product_b):
        resp = client.post("/api/orders", json={
            "customer": customer,
            "items": [{"product_id": product_b.id, "quantity": 5}],
        })
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["message"] == 'Product "Product B" only has 2 left in stock'
        assert body["details"]["shortfall"] == 3

    def test_idempotency_header(self, client, db_session, customer, product_a, stock_of):
        payload = {"customer": customer, "items": [{"product_id": product_a.id, "quantity": 1}]}
        headers = {"Idempotency-Key": "cart-42"}
        first = client.post("/api/orders", json=payload, headers=headers).get_json()
        second = client.post("/api/orders", json=payload, headers=headers).get_json()

        assert first["order_id"] == second["order_id"]
        assert stock_of(product_a.id) == 4

    def test_check_stock(self, client, db_session, product_b):
        resp = client.post("/api/orders/check-stock", json={
            "items": [{"product_id": product_b.id, "quantity": 3}],
        })
        assert resp.status_code == 200
        assert resp.get_json()["available"] is False

    def test_check_stock_empty_cart(self, client, db_session):
        resp = client.post("/api/orders/check-stock", json={"items": []})
        assert resp.status_code == 400

    def test_get_order(self, client, db_session, customer, product_a):
        order_id = client.post("/api/orders", json={
            "customer": customer,
            "items": [{"product_id": product_a.id, "quantity": 2}],
        }).get_json()["order_id"]

        resp = client.get(f"/api/orders/{order_id}")
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["status"] == "pending"
        assert len(data["items"]) == 1

    def test_get_order_not_found(self, client, db_session):
        assert client.get("/api/orders/999999").status_code == 404

    def test_public_products_hide_inactive(self, client, db_session, make_product):
        make_product(name="On sale")
        make_product(name="Retired", is_active=False)
        body = client.get("/api/products").get_json()
        assert [p["name"] for p in body["items"]] == ["On sale"]


# =============================================================================
# BACK OFFICE
# =============================================================================


class TestOrderListRoute:
    def _place(self, client, customer, product, quantity):
        return client.post("/api/orders", json={
            "customer": customer,
            "items": [{"product_id": product.id, "quantity": quantity}],
        }).get_json()["order_id"]

    def test_lists_orders_newest_first(self, client, admin_headers, customer, product_a, product_c):
        older = self._place(client, customer, product_a, 1)
        newer = self._place(client, customer, product_c, 2)

        resp = client.get("/api/admin/orders", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["success"] is True
        assert [o["id"] for o in body["items"]] == [newer, older]
        assert body["items"][0]["items"][0]["product_name"] == "Product C"
        assert body["items"][0]["items"][0]["quantity"] == 2

    def test_filters_by_status(self, client, admin_headers, customer, product_a):
        kept = self._place(client, customer, product_a, 1)
        dropped = self._place(client, customer, product_a, 1)
        client.patch("/api/admin/orders/update-status", headers=admin_headers, json={
            "order_id": dropped,
            "new_status": "cancelled",
            "current_status": "pending",
        })

        body = client.get("/api/admin/orders?status=pending", headers=admin_headers).get_json()
        assert [o["id"] for o in body["items"]] == [kept]

    def test_unknown_status_filter(self, client, admin_headers, db_session):
        resp = client.get("/api/admin/orders?status=lost", headers=admin_headers)
        assert resp.status_code == 400


class TestNonObjectBodies:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/orders"),
            ("PATCH", "/api/admin/orders/update-status"),
            ("POST", "/api/admin/stock-inbound"),
            ("PATCH", "/api/admin/inventory/adjust"),
            ("POST", "/api/admin/products"),
        ],
    )
    @pytest.mark.parametrize("body", [[1, 2], "text", 42])
    def test_rejected_with_message(self, client, admin_headers, db_session, method, path, body):
        resp = client.open(path, method=method, json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "message": "Invalid JSON payload"}

    def test_check_stock_list_body(self, client, db_session):
        resp = client.post("/api/orders/check-stock", json=[1, 2])
        assert resp.status_code == 400
        assert resp.get_json() == {"available": False, "message": "Invalid JSON payload"}


class TestOrderStatusRoute:
    @pytest.fixture
    def order_id(self, client, db_session, customer, product_a):
        return client.post("/api/orders", json={
            "customer": customer,
            "items": [{"product_id": product_a.id, "quantity": 3}],
        }).get_json()["order_id"]

    def _update(self, client, headers, order_id, new_status, current_status):
        return client.patch("/api/admin/orders/update-status", headers=headers, json={
            "order_id": order_id,
            "new_status": new_status,
            "current_status": current_status,
        })

    def test_cancel_restores_stock(self, client, admin_headers, order_id, product_a, stock_of, db_session):
        resp = self._update(client, admin_headers, order_id, "cancelled", "pending")
        assert resp.status_code == 200
        assert resp.get_json()["order"]["status"] == "cancelled"
        assert stock_of(product_a.id) == 5

        entry = db_session.query(AuditLogEntry).filter_by(event_type="order.status_changed").one()
        assert entry.actor == admin_headers["X-Authenticated-User"]

    def test_stale_status_conflict(self, client, admin_headers, order_id):
        assert self._update(client, admin_headers, order_id, "processing", "pending").status_code == 200
        resp = self._update(client, admin_headers, order_id, "cancelled", "pending")
        assert resp.status_code == 409
        assert resp.get_json()["details"]["current_status"] == "processing"

    def test_illegal_transition(self, client, admin_headers, order_id):
        resp = self._update(client, admin_headers, order_id, "delivered", "pending")
        assert resp.status_code == 400

    def test_invalid_status(self, client, admin_headers, order_id):
        resp = self._update(client, admin_headers, order_id, "lost", "pending")
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Invalid status"

    def test_unknown_order(self, client, admin_headers, db_session):
        resp = self._update(client, admin_headers, 999999, "processing", "pending")
        assert resp.status_code == 404

    def test_missing_fields(self, client, admin_headers, db_session):
        resp = client.patch("/api/admin/orders/update-status", headers=admin_headers, json={})
        assert resp.status_code == 400


class TestInventoryRoutes:
    def test_stock_inbound(self, client, admin_headers, db_session, make_product):
        product = make_product(name="Coffee", stock=10, cost="100.00")
        resp = client.post("/api/admin/stock-inbound", headers=admin_headers, json={
            "product_id": product.id,
            "quantity_added": 10,
            "cost_price_at_time": "200.00",
            "supplier": "ACME",
        })
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["new_stock_quantity"] == 20
        assert data["new_cost_price"] == "150.00"

    def test_stock_inbound_invalid(self, client, admin_headers, product_a):
        resp = client.post("/api/admin/stock-inbound", headers=admin_headers, json={
            "product_id": product_a.id,
            "quantity_added": 0,
            "cost_price_at_time": "1.00",
        })
        assert resp.status_code == 400

    def test_stock_inbound_history(self, client, admin_headers, product_a):
        client.post("/api/admin/stock-inbound", headers=admin_headers, json={
            "product_id": product_a.id,
            "quantity_added": 4,
            "cost_price_at_time": "10.00",
        })
        body = client.get(
            f"/api/admin/stock-inbound?product_id={product_a.id}", headers=admin_headers
        ).get_json()
        assert body["stats"]["total_quantity"] == 4
        assert body["inbounds"][0]["product_name"] == "Product A"

    def test_adjust(self, client, admin_headers, product_a):
        resp = client.patch("/api/admin/inventory/adjust", headers=admin_headers, json={
            "product_id": product_a.id,
            "quantity_delta": -1,
            "reason": "Broken jar",
        })
        assert resp.status_code == 200
        assert resp.get_json()["product"]["stock_quantity"] == 4

    def test_adjust_below_zero(self, client, admin_headers, product_a):
        resp = client.patch("/api/admin/inventory/adjust", headers=admin_headers, json={
            "product_id": product_a.id,
            "quantity_delta": -10,
            "reason": "Recount",
        })
        assert resp.status_code == 400


class TestProductRoutes:
    def test_create_product(self, client, admin_headers, db_session):
        resp = client.post("/api/admin/products", headers=admin_headers, json={
            "name": "Oolong",
            "price": "52000",
            "category": "tea",
            "opening_stock": 6,
            "opening_cost": "31000",
        })
        assert resp.status_code == 201
        product = resp.get_json()["product"]
        assert product["price"] == "52000.00"
        assert product["stock_quantity"] == 6
        assert product["cost_price"] == "31000.00"

    def test_create_product_rejects_stock_field(self, client, admin_headers, db_session):
        resp = client.post("/api/admin/products", headers=admin_headers, json={
            "name": "Oolong",
            "price": "52000",
            "stock_quantity": 100,
        })
        assert resp.status_code == 400

    def test_create_product_requires_name(self, client, admin_headers, db_session):
        resp = client.post("/api/admin/products", headers=admin_headers, json={"price": "1.00"})
        assert resp.status_code == 400

    def test_admin_listing_includes_inactive(self, client, admin_headers, make_product):
        make_product(name="Retired", is_active=False)
        body = client.get("/api/admin/products", headers=admin_headers).get_json()
        assert body["count"] == 1


class TestHealth:
    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"
