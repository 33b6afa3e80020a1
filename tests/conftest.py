"""Pytest fixtures for the pharmacos API tests."""

from datetime import date, timedelta

import pytest

from core.config import Config
from core.extensions import db, bcrypt, payos
from main import create_app
from models.userModel import Account
from models.productModels import Product
from models.inventoryModels import Batch, Supplier
from services import account_service


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-that-is-long-enough-for-hs256"
    BCRYPT_LOG_ROUNDS = 4
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@pharmacos.test"
    SCHEDULER_ENABLED = False
    PAYOS_CLIENT_ID = "client"
    PAYOS_API_KEY = "api-key"
    PAYOS_CHECKSUM_KEY = "checksum"
    PAYOS_VERIFY_WEBHOOK = False
    SHIPPING_FEE = 1000
    LOG_LEVEL = "WARNING"


class User:
    def __init__(self, account, token):
        self.id = account.id
        self.role = account.role
        self.headers = {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(username, role="customer"):
        account = Account(
            username=username,
            email=f"{username}@example.com",
            password=bcrypt.generate_password_hash("password123").decode("utf-8"),
            role=role,
            name=username.title(),
        )
        db.session.add(account)
        db.session.commit()
        return User(account, account_service.issue_token(account))

    return _make


@pytest.fixture
def customer(make_user):
    return make_user("alice")


@pytest.fixture
def other_customer(make_user):
    return make_user("bob")


@pytest.fixture
def staff(make_user):
    return make_user("sam", role="staff")


@pytest.fixture
def other_staff(make_user):
    return make_user("tina", role="staff")


@pytest.fixture
def admin(make_user):
    return make_user("root", role="admin")


@pytest.fixture
def make_product(app, staff):
    def _make(name="Serum", price=100, stock=10, expiry_days=365, owner=None, **fields):
        product = Product(
            name=name,
            description=f"{name} description",
            price=price,
            stock_quantity=stock,
            expiry_date=date.today() + timedelta(days=expiry_days) if expiry_days is not None else None,
            created_by=(owner or staff).id,
            **fields,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return _make


@pytest.fixture
def supplier(app, staff):
    supplier = Supplier(
        code="S2501001",
        name="Acme Supply",
        contact_person="Ann",
        email="acme@example.com",
        phone="0900000000",
        address="1 Main St",
        city="Hanoi",
        country="Vietnam",
        created_by=staff.id,
    )
    db.session.add(supplier)
    db.session.commit()
    return supplier


@pytest.fixture
def make_batch(app, staff, supplier):
    """Insert an already approved batch and count it into product stock."""

    def _make(product, remaining, expiry_days, status="active", quantity=None):
        batch = Batch(
            batch_code=f"B{product.id:03d}{expiry_days:04d}{remaining:03d}",
            product_id=product.id,
            supplier_id=supplier.id,
            quantity=quantity or remaining,
            remaining_quantity=remaining,
            unit_cost=50,
            total_cost=50 * (quantity or remaining),
            manufacturing_date=date.today() - timedelta(days=30),
            expiry_date=date.today() + timedelta(days=expiry_days),
            location="Shelf A",
            status=status,
            qc_passed=status == "active",
            created_by=staff.id,
        )
        db.session.add(batch)
        db.session.commit()
        return batch

    return _make


@pytest.fixture
def fake_payos(monkeypatch):
    """Replace the PayOS HTTP calls with an in-memory double."""
    calls = {"created": [], "status": "PENDING"}

    def create_payment_link(payment_data):
        calls["created"].append(payment_data)
        return {
            "checkoutUrl": f"https://pay.example/{payment_data['orderCode']}",
            "orderCode": payment_data["orderCode"],
            "status": "PENDING",
        }

    def get_payment_link_information(order_code):
        return {"orderCode": order_code, "status": calls["status"]}

    monkeypatch.setattr(payos, "create_payment_link", create_payment_link)
    monkeypatch.setattr(payos, "get_payment_link_information", get_payment_link_information)
    return calls


def place_order(client, user, items, payment_method="cod", **extra):
    body = {
        "items": [{"productId": pid, "quantity": qty} for pid, qty in items],
        "recipientName": "Alice",
        "phone": "0900000000",
        "shippingAddress": "12 Main St",
        "paymentMethod": payment_method,
    }
    body.update(extra)
    response = client.post("/api/orders", json=body, headers=user.headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["order"]


def set_status(client, user, order_id, status, **extra):
    return client.patch(
        f"/api/orders/{order_id}/update-status",
        json={"status": status, **extra},
        headers=user.headers,
    )
