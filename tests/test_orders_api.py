"""
Тесты API заказов и платежей.
"""

import json

from factories import auth_headers, make_address, make_product, make_user
from storefront.core.exceptions import PaymentError
from storefront.db.models import AuditLog, Order, OrderStatus, PaymentStatus, Product, Severity


def _cart_order(client, db, user, product, quantity=1):
    address = make_address(db, user)
    client.post(
        "/api/v1/cart/add",
        json={"product_id": product.id, "quantity": quantity},
        headers=auth_headers(user),
    )
    return client.post(
        "/api/v1/orders/from-cart",
        json={"shipping_address_id": address.id},
        headers=auth_headers(user),
    )


def _event(event_type, intent_id, order_id=None, **intent):
    obj = {"id": intent_id, **intent}
    if order_id:
        obj["metadata"] = {"order_id": order_id}
    return json.dumps({"type": event_type, "data": {"object": obj}})


def _checkout(client, user, product, quantity=1):
    return client.post(
        "/api/v1/orders",
        json={
            "items": [{"product_id": product.id, "quantity": quantity}],
            "total_amount_cents": product.price_cents * quantity,
            "shipping_cost_cents": 0,
        },
        headers=auth_headers(user),
    )


class TestCustomerOrders:
    def test_order_from_cart(self, client, db, user, product):
        response = _cart_order(client, db, user, product, 2)

        assert response.status_code == 201
        order = response.json()["order"]
        assert order["status"] == OrderStatus.PENDING
        assert order["subtotal_cents"] == 2 * product.price_cents
        assert order["shipping_address"]["city"] == "London"
        assert client.get("/api/v1/cart", headers=auth_headers(user)).json()["items"] == []

    def test_checkout_keeps_cart(self, client, user, product):
        client.post(
            "/api/v1/cart/add", json={"product_id": product.id}, headers=auth_headers(user)
        )

        response = _checkout(client, user, product)

        assert response.status_code == 201
        assert client.get("/api/v1/cart", headers=auth_headers(user)).json()["item_count"] == 1

    def test_checkout_unverified(self, client, db, product):
        unverified = make_user(db, email="new@example.com", verified=False)

        assert _checkout(client, unverified, product).status_code == 403

    def test_checkout_insufficient_stock(self, client, user, product):
        response = _checkout(client, user, product, product.stock + 1)

        assert response.status_code == 400
        assert response.json()["stock_issues"][0]["product_id"] == product.id

    def test_list_and_filter(self, client, user, product):
        _checkout(client, user, product)

        listed = client.get("/api/v1/orders", headers=auth_headers(user)).json()
        assert listed["pagination"]["total"] == 1

        confirmed = client.get(
            "/api/v1/orders", params={"status": "CONFIRMED"}, headers=auth_headers(user)
        ).json()
        assert confirmed["orders"] == []

        bad = client.get("/api/v1/orders", params={"status": "LOST"}, headers=auth_headers(user))
        assert bad.status_code == 400

    def test_other_users_order_is_hidden(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]
        stranger = make_user(db, email="stranger@example.com")

        response = client.get(f"/api/v1/orders/{order_id}", headers=auth_headers(stranger))

        assert response.status_code == 404

    def test_cancel_and_confirm(self, client, db, user, product):
        first = _checkout(client, user, product).json()["order"]["id"]
        second = _checkout(client, user, product).json()["order"]["id"]

        cancelled = client.patch(f"/api/v1/orders/{first}/cancel", headers=auth_headers(user))
        assert cancelled.json()["order"]["status"] == OrderStatus.CANCELLED

        confirmed = client.patch(
            f"/api/v1/orders/{second}/confirm-payment", headers=auth_headers(user)
        )
        assert confirmed.json()["order"]["payment_status"] == PaymentStatus.PAID
        again = client.patch(
            f"/api/v1/orders/{second}/confirm-payment", headers=auth_headers(user)
        )
        assert again.json()["message"] == "Payment already confirmed"

        db.expire_all()
        assert db.get(Product, product.id).stock == 2
        entries = db.query(AuditLog).filter(AuditLog.action == "confirm_order_payment").all()
        assert [e.resource_id for e in entries] == [second]


class TestAdminOrders:
    def test_requires_admin(self, client, user):
        assert client.get("/api/v1/orders/admin/all", headers=auth_headers(user)).status_code == 403

    def test_search_by_customer_email(self, client, db, user, admin, product):
        _checkout(client, user, product)
        other = make_user(db, email="zoe@example.com")
        _checkout(client, other, product)

        response = client.get(
            "/api/v1/orders/admin/all", params={"search": "zoe@"}, headers=auth_headers(admin)
        )

        orders = response.json()["orders"]
        assert len(orders) == 1
        assert orders[0]["user"]["email"] == "zoe@example.com"

    def test_status_update_is_audited(self, client, db, user, admin, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]

        response = client.patch(
            f"/api/v1/orders/admin/{order_id}/status",
            json={"status": "confirmed", "tracking_number": "TRK1"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["order"]["status"] == OrderStatus.CONFIRMED
        entry = db.query(AuditLog).filter(AuditLog.action == "update_order_status").one()
        assert entry.previous_values["status"] == OrderStatus.PENDING

    def test_invalid_transition(self, client, user, admin, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]

        response = client.patch(
            f"/api/v1/orders/admin/{order_id}/status",
            json={"status": "DELIVERED"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400
        assert "allowed_transitions" in response.json()

    def test_nothing_to_update(self, client, user, admin, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]

        response = client.patch(
            f"/api/v1/orders/admin/{order_id}/status", json={}, headers=auth_headers(admin)
        )

        assert response.status_code == 400

    def test_refund_error_reported(self, client, db, gateway, user, admin, product, monkeypatch):
        order_id = _checkout(client, user, product).json()["order"]["id"]
        order = db.get(Order, order_id)
        order.status = OrderStatus.DELIVERED
        order.payment_status = PaymentStatus.PAID
        order.payment_intent_id = "pi_refund"
        db.commit()

        def fail(payment_intent_id):
            raise PaymentError("refund unavailable", 502)

        monkeypatch.setattr(gateway, "refund", fail)

        response = client.patch(
            f"/api/v1/orders/admin/{order_id}/status",
            json={"status": "REFUNDED"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["refund_error"] == "refund unavailable"
        assert db.query(AuditLog).filter(AuditLog.action == "stripe_refund_failed").count() == 1


class TestPayments:
    def test_create_intent_stores_id(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]

        response = client.post(
            "/api/v1/payments/create-payment-intent",
            json={"order_id": order_id},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["client_secret"].startswith(body["payment_intent_id"])
        db.expire_all()
        assert db.get(Order, order_id).payment_intent_id == body["payment_intent_id"]

    def test_missing_order_id(self, client, user):
        response = client.post(
            "/api/v1/payments/create-payment-intent", json={}, headers=auth_headers(user)
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Order ID is required"

    def test_already_paid(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]
        client.patch(f"/api/v1/orders/{order_id}/confirm-payment", headers=auth_headers(user))

        response = client.post(
            "/api/v1/payments/create-payment-intent",
            json={"order_id": order_id},
            headers=auth_headers(user),
        )

        assert response.status_code == 400

    def test_below_minimum(self, client, db, user):
        cheap = make_product(db, name="Button", price_cents=10)
        order_id = _checkout(client, user, cheap).json()["order"]["id"]

        response = client.post(
            "/api/v1/payments/create-payment-intent",
            json={"order_id": order_id},
            headers=auth_headers(user),
        )

        assert response.status_code == 400

    def test_webhook_marks_order_paid(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]
        event = {
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_hook", "metadata": {"order_id": order_id}}},
        }

        response = client.post("/api/v1/payments/webhook", content=json.dumps(event))

        assert response.json() == {"received": True}
        db.expire_all()
        order = db.get(Order, order_id)
        assert order.payment_status == PaymentStatus.PAID
        assert order.payment_intent_id == "pi_hook"

    def test_webhook_payment_failed(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]
        event = {
            "type": "payment_intent.payment_failed",
            "data": {"object": {"id": "pi_x", "metadata": {"order_id": order_id}}},
        }

        client.post("/api/v1/payments/webhook", content=json.dumps(event))

        db.expire_all()
        assert db.get(Order, order_id).payment_status == PaymentStatus.FAILED

    def test_webhook_audits_payment(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]

        client.post(
            "/api/v1/payments/webhook",
            content=_event("payment_intent.succeeded", "pi_ok", order_id, amount=4500),
        )
        client.post(
            "/api/v1/payments/webhook",
            content=_event("payment_intent.succeeded", "pi_ok", order_id, amount=4500),
        )

        entry = db.query(AuditLog).filter(AuditLog.action == "payment_succeeded").one()
        assert entry.user_email == "stripe-webhook"
        assert entry.details["payment_intent_id"] == "pi_ok"
        assert entry.details["amount_cents"] == 4500

    def test_webhook_failure_is_audited(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]

        client.post(
            "/api/v1/payments/webhook",
            content=_event(
                "payment_intent.payment_failed", "pi_declined", order_id,
                last_payment_error={"message": "Your card was declined."},
            ),
        )

        entry = db.query(AuditLog).filter(AuditLog.action == "payment_failed").one()
        assert entry.severity == Severity.WARNING
        assert entry.details["failure_message"] == "Your card was declined."

    def test_webhook_finds_order_by_intent_without_metadata(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]
        intent_id = client.post(
            "/api/v1/payments/create-payment-intent",
            json={"order_id": order_id},
            headers=auth_headers(user),
        ).json()["payment_intent_id"]

        response = client.post(
            "/api/v1/payments/webhook",
            content=json.dumps({
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": intent_id}},
            }),
        )

        assert response.status_code == 200
        db.expire_all()
        order = db.get(Order, order_id)
        assert (order.status, order.payment_status) == (OrderStatus.CONFIRMED, PaymentStatus.PAID)

    def test_webhook_for_unknown_order(self, client, db):
        response = client.post(
            "/api/v1/payments/webhook",
            content=_event("payment_intent.succeeded", "pi_nobody", "missing-order"),
        )

        assert response.json() == {"received": True}
        assert db.query(AuditLog).count() == 0

    def test_late_failure_after_success(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]
        client.post(
            "/api/v1/payments/webhook",
            content=_event("payment_intent.succeeded", "pi_second", order_id),
        )

        response = client.post(
            "/api/v1/payments/webhook",
            content=_event("payment_intent.payment_failed", "pi_first", order_id),
        )

        assert response.status_code == 200
        db.expire_all()
        order = db.get(Order, order_id)
        assert (order.status, order.payment_status) == (OrderStatus.CONFIRMED, PaymentStatus.PAID)
        assert db.query(AuditLog).filter(AuditLog.action == "payment_failed").count() == 0

    def test_webhook_on_cancelled_order(self, client, db, user, product):
        order_id = _checkout(client, user, product).json()["order"]["id"]
        client.patch(f"/api/v1/orders/{order_id}/cancel", headers=auth_headers(user))

        for event_type in ("payment_intent.payment_failed", "payment_intent.succeeded"):
            response = client.post(
                "/api/v1/payments/webhook", content=_event(event_type, "pi_late", order_id)
            )
            assert response.status_code == 200

        db.expire_all()
        order = db.get(Order, order_id)
        assert (order.status, order.payment_status) == (
            OrderStatus.CANCELLED, PaymentStatus.PENDING,
        )
        assert db.get(Product, product.id).stock == 3
        entry = db.query(AuditLog).filter(
            AuditLog.action == "payment_succeeded_for_inactive_order"
        ).one()
        assert entry.severity == Severity.CRITICAL

    def test_webhook_bad_payload(self, client):
        response = client.post("/api/v1/payments/webhook", content=b"not json")

        assert response.status_code == 400

    def test_unhandled_event_acknowledged(self, client):
        event = {"type": "charge.refunded", "data": {"object": {}}}

        response = client.post("/api/v1/payments/webhook", content=json.dumps(event))

        assert response.status_code == 200
