import click
from flask.cli import with_appcontext

from core.extensions import db, bcrypt
from core.imports import date, timedelta
from core.auth import ADMIN, STAFF, CUSTOMER
from models.userModel import Account
from models.productModels import Product
from models.inventoryModels import Supplier
from services import payment_service


@click.command("expire-payments")
@with_appcontext
def expire_payments_command():
    """Fail online payments whose checkout window has passed."""
    count = payment_service.expire_stale_payments()
    click.echo(f"Expired {count} payment(s).")


def seed_account(username, email, role, raw_password="password123", name=None):
    account = Account.query.filter_by(email=email).first()
    if account:
        click.echo(f"{role} {email} already exists.")
        return account
    account = Account(
        username=username,
        email=email,
        password=bcrypt.generate_password_hash(raw_password).decode("utf-8"),
        role=role,
        name=name or username,
    )
    db.session.add(account)
    db.session.commit()
    click.echo(f"Demo {role} created (email={email}, password={raw_password})")
    return account


def seed_products(staff):
    if Product.query.first():
        click.echo("Products already seeded.")
        return
    today = date.today()
    demo = [
        ("Hydrating Serum", "Serum", "Glowlab", 250000, 40, today + timedelta(days=400)),
        ("Gentle Cleanser", "Cleanser", "Purea", 180000, 25, today + timedelta(days=20)),
        ("Sunscreen SPF50", "Sunscreen", "Solara", 320000, 8, today + timedelta(days=200)),
        ("Vitamin C Cream", "Moisturizer", "Glowlab", 290000, 0, today + timedelta(days=90)),
    ]
    for name, category, brand, price, stock, expiry in demo:
        db.session.add(Product(
            name=name,
            description=f"{brand} {name}",
            category=category,
            brand=brand,
            price=price,
            stock_quantity=stock,
            expiry_date=expiry,
            benefits=["hydration"],
            skin_type=["all"],
            ai_features={"texture": "light"},
            created_by=staff.id,
        ))
    db.session.commit()
    click.echo(f"Seeded {len(demo)} products.")


def seed_supplier(staff):
    supplier = Supplier.query.filter_by(code="S0001").first()
    if supplier:
        return supplier
    supplier = Supplier(
        code="S0001",
        name="Demo Cosmetics Distributor",
        contact_person="Alex Tran",
        email="supply@example.com",
        phone="0900000001",
        address="1 Industrial Rd",
        city="Ho Chi Minh City",
        country="Vietnam",
        rating=4,
        created_by=staff.id,
    )
    db.session.add(supplier)
    db.session.commit()
    click.echo("Demo supplier created.")
    return supplier


def seed_demo():
    db.create_all()
    seed_account("admin", "admin@example.com", ADMIN)
    staff = seed_account("staff", "staff@example.com", STAFF)
    seed_account("customer", "customer@example.com", CUSTOMER)
    seed_products(staff)
    seed_supplier(staff)


@click.command("seed-demo")
@with_appcontext
def seed_demo_command():
    """Create tables and demo accounts, products and a supplier."""
    seed_demo()

