"""
API tests: authentication, role checks and the checkout-to-payment flow
through the HTTP layer.
"""

from app.time_utils import business_today

from conftest import CUSTOMER_FORM, TEST_PASSWORD


def _checkout(client, catalog, headers=None, **extra):
    body = {
        "customer": dict(CUSTOMER_FORM),
        "items": [{"inventory_id": catalog["cement"].id, "quantity": 100}],
    }
    body.update(extra)
    return client.post("/api/orders", json=body, headers=headers or {})


class TestAuth:
    def test_login_and_me(self, client, admin_user):
        res = client.post("/api/auth/login", json={"email": "ADMIN@uniasia.test", "password": TEST_PASSWORD})
        assert res.status_code == 200
        token = res.get_json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["role"] == "admin"

    def test_bad_password(self, client, admin_user):
        res = client.post("/api/auth/login", json={"email": "admin@uniasia.test", "password": "nope"})
        assert res.status_code == 401

    def test_logout_revokes_token(self, client, admin_headers):
        assert client.post("/api/auth/logout", headers=admin_headers).status_code == 200
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 401

    def test_signup_creates_customer(self, client, db_session):
        body = dict(CUSTOMER_FORM, email="new@shop.ph", password=TEST_PASSWORD)
        res = client.post("/api/auth/signup", json=body)

        assert res.status_code == 201
        data = res.get_json()
        assert data["customer"]["code"].startswith("TXN-")
        assert data["token"]

        again = client.post("/api/auth/signup", json=body)
        assert again.status_code == 409

    def test_signup_weak_password(self, client, db_session):
        res = client.post("/api/auth/signup", json=dict(CUSTOMER_FORM, email="x@shop.ph", password="short"))
        assert res.status_code == 400


class TestPermissions:
    def test_admin_routes_require_token(self, client, db_session):
        assert client.post("/api/orders/1/accept").status_code == 401

    def test_customer_cannot_accept(self, client, catalog, customer_headers):
        order_id = _checkout(client, catalog, customer_headers).get_json()["id"]
        res = client.post(f"/api/orders/{order_id}/accept", headers=customer_headers)
        assert res.status_code == 403

    def test_customer_sees_only_own_orders(self, client, catalog, customer_headers, admin_headers):
        _checkout(client, catalog, customer=dict(CUSTOMER_FORM, email="guest@other.ph"))
        own = _checkout(client, catalog, customer_headers).get_json()["id"]

        res = client.get("/api/orders", headers=customer_headers)
        assert [o["id"] for o in res.get_json()["orders"]] == [own]

        assert client.get("/api/orders", headers=admin_headers).get_json()["count"] == 2


class TestOrderFlow:
    def test_checkout_validation_error(self, client, catalog):
        res = client.post("/api/orders", json={"customer": {"name": "X"}, "items": []})
        assert res.status_code == 400
        assert "missing" in res.get_json()["details"]

    def test_bad_quantity_type(self, client, catalog):
        res = _checkout(client, catalog, items=[{"inventory_id": catalog["cement"].id, "quantity": 1.5}])
        assert res.status_code == 400

    def test_credit_flow_to_paid_term(self, client, catalog, customer_headers, admin_headers):
        form = dict(CUSTOMER_FORM, payment_type="Credit")
        res = client.post("/api/orders", json={
            "customer": form,
            "items": [{"inventory_id": catalog["cement"].id, "quantity": 100}],
            "terms_months": 3,
            "accepted_terms": True,
        }, headers=customer_headers)
        assert res.status_code == 201
        order = res.get_json()
        assert order["txn_code"].startswith("TXN-")
        assert order["interest_percent"] in ("6", "6.00")

        order_id = order["id"]
        assert client.post(f"/api/orders/{order_id}/accept", headers=admin_headers).status_code == 200

        quote = client.post(f"/api/orders/{order_id}/quote", json={"tax_enabled": True}, headers=admin_headers)
        assert quote.get_json()["grand_total_cents"] == 1187200

        done = client.post(f"/api/orders/{order_id}/complete", json={
            "po_number": "PO-7788",
            "salesman": "Pedro",
            "tax_enabled": True,
        }, headers=admin_headers)
        assert done.status_code == 200
        body = done.get_json()
        assert body["status"] == "completed"
        assert [t["amount_due_cents"] for t in body["installments"]] == [395733, 395733, 395734]

        check = client.post("/api/payments/check", json={
            "order_id": order_id, "amount_cents": 400000,
        }, headers=customer_headers)
        assert check.status_code == 200
        assert check.get_json()["ok"] is False

        paid = client.post("/api/payments", json={
            "order_id": order_id,
            "amount_cents": 395733,
            "cheque_number": "000555",
            "bank_name": "Metrobank",
            "cheque_date": business_today().isoformat(),
        }, headers=customer_headers)
        assert paid.status_code == 201
        payment_id = paid.get_json()["payment"]["id"]

        received = client.post(f"/api/payments/{payment_id}/receive", headers=admin_headers)
        assert received.status_code == 200
        summary = received.get_json()["summary"]
        assert summary["installments"][0]["status"] == "paid"
        assert summary["remaining_balance_cents"] == 1187200 - 395733

        again = client.post(f"/api/payments/{payment_id}/receive", headers=admin_headers)
        assert again.status_code == 409

        invoice = client.get(f"/api/documents/orders/{order_id}/invoice", headers=customer_headers)
        assert invoice.status_code == 200
        assert invoice.get_json()["po_number"] == "PO-7788"

    def test_duplicate_po_is_conflict(self, client, catalog, admin_headers):
        ids = [_checkout(client, catalog).get_json()["id"] for _ in range(2)]
        for order_id in ids:
            client.post(f"/api/orders/{order_id}/accept", headers=admin_headers)

        first = client.post(f"/api/orders/{ids[0]}/complete",
                            json={"po_number": "PO-1", "salesman": "Pedro"}, headers=admin_headers)
        second = client.post(f"/api/orders/{ids[1]}/complete",
                             json={"po_number": "PO-1", "salesman": "Pedro"}, headers=admin_headers)

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.get_json()["error"] == "PO Number is already used, try another."

    def test_delivery_receipt_excludes_out_of_stock(self, client, catalog, admin_headers):
        res = client.post("/api/orders", json={
            "customer": dict(CUSTOMER_FORM),
            "items": [
                {"inventory_id": catalog["cement"].id, "quantity": 10},
                {"inventory_id": catalog["rebar"].id, "quantity": 2},
            ],
        })
        order = res.get_json()
        rebar_item = [i for i in order["items"] if i["inventory_id"] == catalog["rebar"].id][0]

        client.post(f"/api/orders/{order['id']}/accept", headers=admin_headers)
        edit = client.patch(f"/api/orders/{order['id']}/items/{rebar_item['id']}",
                            json={"fulfilled_quantity": 0}, headers=admin_headers)
        assert edit.status_code == 200

        client.post(f"/api/orders/{order['id']}/complete",
                    json={"po_number": "PO-DR", "salesman": "Pedro", "tax_enabled": False},
                    headers=admin_headers)

        receipt = client.get(f"/api/documents/orders/{order['id']}/delivery-receipt", headers=admin_headers)
        data = receipt.get_json()
        assert len(data["lines"]) == 1
        assert data["subtotal_cents"] == 100000
        assert data["amount_due_cents"] == 100000


class TestCatalog:
    def test_admin_creates_item(self, client, admin_headers):
        res = client.post("/api/inventory", json={
            "product_name": "GI Wire #16", "unit_price_cents": 8500, "quantity": 40, "sku": "GIW-16",
        }, headers=admin_headers)
        assert res.status_code == 201

        dup = client.post("/api/inventory", json={
            "product_name": "Other", "unit_price_cents": 1, "sku": "GIW-16",
        }, headers=admin_headers)
        assert dup.status_code == 409

        listing = client.get("/api/inventory?q=wire")
        assert listing.get_json()["count"] == 1

    def test_negative_price_rejected(self, client, admin_headers):
        res = client.post("/api/inventory", json={
            "product_name": "Bad", "unit_price_cents": -1,
        }, headers=admin_headers)
        assert res.status_code == 400


def test_health(client, admin_user):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.get_json()["checks"]["database"]["status"] == "healthy"
