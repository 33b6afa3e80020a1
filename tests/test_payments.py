"""PayOS checkout creation, webhook reconciliation and the timeout sweep."""

from datetime import datetime, timedelta

from core.extensions import db, payos
from core.errors import UpstreamError
from models.orderModels import Order
from models.paymentModels import Payment
from models.productModels import Product
from services import payment_service

from conftest import place_order, set_status


def create_payment(client, user, order_id):
    return client.post("/api/payments/create", json={"orderId": order_id}, headers=user.headers)


def webhook(client, order_code, code="00"):
    return client.post("/api/payments/webhook", json={
        "code": code,
        "data": {"orderCode": int(order_code), "transactionDateTime": "2025-01-01 10:00:00"},
    })


def online_order(client, customer, product, quantity=2):
    return place_order(client, customer, [(product.id, quantity)], payment_method="online")


class TestCreatePayment:
    def test_creates_pending_payment(self, client, customer, make_product, fake_payos):
        product = make_product(price=100, stock=10)
        order = online_order(client, customer, product)

        response = create_payment(client, customer, order["id"])
        assert response.status_code == 201
        body = response.get_json()
        assert body["paymentUrl"].startswith("https://pay.example/")

        sent = fake_payos["created"][0]
        assert sent["amount"] == 200 + 1000
        assert len(sent["description"]) <= 25

        payment = db.session.get(Payment, body["paymentId"])
        assert payment.status == "pending"
        assert payment.payment_timeout > payment.created_at

    def test_reuses_still_pending_payment(self, client, customer, make_product, fake_payos):
        product = make_product()
        order = online_order(client, customer, product)
        first = create_payment(client, customer, order["id"]).get_json()

        response = create_payment(client, customer, order["id"])
        assert response.status_code == 400
        assert response.get_json()["data"]["paymentId"] == first["paymentId"]

    def test_replaces_payment_provider_no_longer_holds(self, client, customer, make_product, fake_payos):
        product = make_product()
        order = online_order(client, customer, product)
        first = create_payment(client, customer, order["id"]).get_json()

        fake_payos["status"] = "CANCELLED"
        response = create_payment(client, customer, order["id"])
        assert response.status_code == 201
        assert db.session.get(Payment, first["paymentId"]).status == "failed"

    def test_cod_orders_cannot_pay_online(self, client, customer, make_product, fake_payos):
        product = make_product()
        order = place_order(client, customer, [(product.id, 1)], payment_method="cod")
        assert create_payment(client, customer, order["id"]).status_code == 400

    def test_only_owner_can_pay(self, client, customer, other_customer, make_product, fake_payos):
        product = make_product()
        order = online_order(client, customer, product)
        assert create_payment(client, other_customer, order["id"]).status_code == 403

    def test_provider_failure_persists_nothing(self, client, customer, make_product, monkeypatch):
        product = make_product()
        order = online_order(client, customer, product)

        def boom(payment_data):
            raise UpstreamError("Payment provider timed out")

        monkeypatch.setattr(payos, "create_payment_link", boom)
        response = create_payment(client, customer, order["id"])
        assert response.status_code == 500
        assert Payment.query.count() == 0

    def test_payment_opened_meanwhile_wins(self, client, customer, make_product, monkeypatch):
        product = make_product()
        order = online_order(client, customer, product)

        def racing_link(payment_data):
            # another request for the same order commits first
            db.session.add(Payment(
                order_id=order["id"], user_id=customer.id, amount=1, provider_order_code="111",
                status="pending", payment_url="https://pay.example/111", payment_method="online",
            ))
            db.session.commit()
            return {"checkoutUrl": f"https://pay.example/{payment_data['orderCode']}"}

        monkeypatch.setattr(payos, "create_payment_link", racing_link)
        response = create_payment(client, customer, order["id"])
        assert response.status_code == 400
        assert response.get_json()["data"]["paymentUrl"] == "https://pay.example/111"
        assert Payment.query.filter_by(order_id=order["id"], status="pending").count() == 1


class TestWebhook:
    def test_success_deducts_stock_and_clears_cart(self, client, customer, make_product, fake_payos):
        product = make_product(stock=10)
        order = online_order(client, customer, product, quantity=3)
        client.post("/api/cart/items", json={"productId": product.id, "quantity": 1}, headers=customer.headers)
        payment = db.session.get(Payment, create_payment(client, customer, order["id"]).get_json()["paymentId"])

        response = webhook(client, payment.provider_order_code)
        assert response.status_code == 200

        assert db.session.get(Product, product.id).stock_quantity == 7
        refreshed = db.session.get(Order, order["id"])
        assert refreshed.payment_status == "success"
        assert refreshed.stock_deducted is True
        assert db.session.get(Payment, payment.id).status == "completed"
        assert client.get("/api/cart", headers=customer.headers).get_json()["items"] == []

    def test_replay_is_idempotent(self, client, customer, make_product, fake_payos):
        product = make_product(stock=10)
        order = online_order(client, customer, product, quantity=3)
        payment_id = create_payment(client, customer, order["id"]).get_json()["paymentId"]
        code = db.session.get(Payment, payment_id).provider_order_code

        webhook(client, code)
        response = webhook(client, code)
        assert response.status_code == 200
        assert response.get_json()["message"] == "Payment already processed"
        assert db.session.get(Product, product.id).stock_quantity == 7

    def test_staff_transition_after_webhook_does_not_deduct_again(self, client, customer, staff,
                                                                   make_product, fake_payos):
        product = make_product(stock=10)
        order = place_order(client, customer, [(product.id, 2)], payment_method="bank")
        payment_id = create_payment(client, customer, order["id"]).get_json()["paymentId"]
        webhook(client, db.session.get(Payment, payment_id).provider_order_code)

        set_status(client, staff, order["id"], "processing")
        assert db.session.get(Product, product.id).stock_quantity == 8

        set_status(client, staff, order["id"], "cancelled", cancelReason="refund")
        assert db.session.get(Product, product.id).stock_quantity == 10

    def test_failure_code_marks_failed(self, client, customer, make_product, fake_payos):
        product = make_product(stock=10)
        order = online_order(client, customer, product)
        payment_id = create_payment(client, customer, order["id"]).get_json()["paymentId"]

        response = webhook(client, db.session.get(Payment, payment_id).provider_order_code, code="01")
        assert response.status_code == 200
        assert db.session.get(Payment, payment_id).status == "failed"
        assert db.session.get(Order, order["id"]).payment_status == "failed"
        assert db.session.get(Product, product.id).stock_quantity == 10

    def test_unknown_order_code_is_ok(self, client):
        response = webhook(client, 123456)
        assert response.status_code == 200
        assert "No payment found" in response.get_json()["message"]

    def test_empty_body_is_ok(self, client):
        response = client.post("/api/payments/webhook", data="", content_type="application/json")
        assert response.status_code == 200

    def test_malformed_payload(self, client):
        assert client.post("/api/payments/webhook", json={"code": "00"}).status_code == 400
        assert client.post("/api/payments/webhook", json={"code": "00", "data": {}}).status_code == 400
        assert client.post("/api/payments/webhook", json=[{"code": "00"}]).status_code == 400

    def test_cancelled_order_is_left_alone(self, client, customer, make_product, fake_payos):
        product = make_product(stock=10)
        order = online_order(client, customer, product)
        payment_id = create_payment(client, customer, order["id"]).get_json()["paymentId"]
        code = db.session.get(Payment, payment_id).provider_order_code

        # cancelling also cancels the pending payment
        client.post(f"/api/orders/{order['id']}/cancel", json={}, headers=customer.headers)
        response = webhook(client, code)
        assert response.status_code == 200
        assert db.session.get(Product, product.id).stock_quantity == 10
        assert db.session.get(Order, order["id"]).payment_status == "cancelled"

    def test_customer_cancel_after_payment_restores_stock(self, client, customer, make_product, fake_payos):
        product = make_product(stock=10)
        order = online_order(client, customer, product, quantity=3)
        payment_id = create_payment(client, customer, order["id"]).get_json()["paymentId"]
        webhook(client, db.session.get(Payment, payment_id).provider_order_code)
        assert db.session.get(Product, product.id).stock_quantity == 7

        response = client.post(f"/api/orders/{order['id']}/cancel", json={}, headers=customer.headers)
        assert response.status_code == 200

        refreshed = db.session.get(Order, order["id"])
        assert refreshed.status == "cancelled"
        assert refreshed.stock_deducted is False
        assert db.session.get(Product, product.id).stock_quantity == 10

    def test_shortage_rolls_back_and_asks_for_retry(self, client, customer, make_product, fake_payos):
        product = make_product(stock=5)
        order = online_order(client, customer, product, quantity=5)
        payment_id = create_payment(client, customer, order["id"]).get_json()["paymentId"]

        db.session.get(Product, product.id).stock_quantity = 2
        db.session.commit()

        response = webhook(client, db.session.get(Payment, payment_id).provider_order_code)
        assert response.status_code == 500
        assert db.session.get(Payment, payment_id).status == "pending"
        assert db.session.get(Order, order["id"]).payment_status == "pending"
        assert db.session.get(Product, product.id).stock_quantity == 2


class TestResetAndSweep:
    def test_reset_fails_pending_payments(self, client, customer, make_product, fake_payos):
        product = make_product()
        order = online_order(client, customer, product)
        payment_id = create_payment(client, customer, order["id"]).get_json()["paymentId"]

        response = client.post(f"/api/payments/reset/{order['id']}", headers=customer.headers)
        assert response.get_json()["modifiedCount"] == 1
        payment = db.session.get(Payment, payment_id)
        assert payment.status == "failed"
        assert payment.cancelled_at is not None

    def test_sweep_expires_stale_payments(self, client, customer, make_product, fake_payos):
        product = make_product()
        order = online_order(client, customer, product)
        payment_id = create_payment(client, customer, order["id"]).get_json()["paymentId"]

        later = datetime.utcnow() + timedelta(minutes=5)
        assert payment_service.expire_stale_payments(now=later) == 1
        assert payment_service.expire_stale_payments(now=later) == 0

        payment = db.session.get(Payment, payment_id)
        assert payment.status == "failed"
        assert payment.is_expired is True
        assert db.session.get(Order, order["id"]).payment_status == "expired"

    def test_sweep_leaves_fresh_payments(self, client, customer, make_product, fake_payos):
        product = make_product()
        order = online_order(client, customer, product)
        create_payment(client, customer, order["id"])
        assert payment_service.expire_stale_payments() == 0

    def test_cli_command(self, app):
        result = app.test_cli_runner().invoke(args=["expire-payments"])
        assert "Expired 0 payment(s)." in result.output

    def test_get_payment_owner_only(self, client, customer, other_customer, make_product, fake_payos):
        product = make_product()
        order = online_order(client, customer, product)
        payment_id = create_payment(client, customer, order["id"]).get_json()["paymentId"]

        assert client.get(f"/api/payments/{payment_id}", headers=customer.headers).status_code == 200
        assert client.get(f"/api/payments/{payment_id}", headers=other_customer.headers).status_code == 403
