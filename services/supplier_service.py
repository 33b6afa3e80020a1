import random

from core.extensions import db
from core.imports import date, IntegrityError
from core.errors import ConflictError, NotFoundError, ValidationError
from models.inventoryModels import Batch, Supplier, SUPPLIER_STATUSES

REQUIRED_FIELDS = ("name", "contactPerson", "email", "phone", "address", "city", "country")

FIELD_MAP = {
    "name": "name",
    "contactPerson": "contact_person",
    "email": "email",
    "phone": "phone",
    "address": "address",
    "city": "city",
    "country": "country",
    "taxCode": "tax_code",
    "website": "website",
    "paymentTerms": "payment_terms",
    "notes": "notes",
}


def generate_supplier_code(today=None):
    today = today or date.today()
    return f"S{today:%y%m}{random.randint(0, 999):03d}"


def get_supplier(supplier_id):
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


def parse_rating(value):
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationError("Rating must be between 1 and 5")
    return value


def create_supplier(data, actor_id):
    data = data or {}
    missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
    if missing:
        raise ValidationError("Missing required fields", fields=missing)

    code = (data.get("code") or "").strip().upper()
    if code:
        if Supplier.query.filter_by(code=code).first():
            raise ConflictError("Supplier code already exists")
    else:
        code = generate_supplier_code()
        while Supplier.query.filter_by(code=code).first():
            code = generate_supplier_code()

    status = data.get("status") or "active"
    if status not in SUPPLIER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(SUPPLIER_STATUSES)}")

    supplier = Supplier(code=code, status=status, created_by=actor_id,
                        rating=parse_rating(data["rating"]) if "rating" in data else 1)
    for key, attr in FIELD_MAP.items():
        if key in data and data[key] is not None:
            value = data[key].strip() if isinstance(data[key], str) else data[key]
            setattr(supplier, attr, value.lower() if key == "email" else value)

    db.session.add(supplier)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Supplier code already exists")
    return supplier


def update_supplier(supplier_id, data):
    data = data or {}
    supplier = get_supplier(supplier_id)
    email = data.get("email")
    if email and email.lower() != supplier.email:
        if Supplier.query.filter(Supplier.email == email.lower(), Supplier.id != supplier.id).first():
            raise ConflictError("Email already exists", status_code=400)
    if data.get("status"):
        if data["status"] not in SUPPLIER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(SUPPLIER_STATUSES)}")
        supplier.status = data["status"]
    for key, attr in FIELD_MAP.items():
        if key in data and data[key] is not None:
            value = data[key].strip() if isinstance(data[key], str) else data[key]
            setattr(supplier, attr, value.lower() if key == "email" else value)
    db.session.commit()
    return supplier


def rate_supplier(supplier_id, rating):
    supplier = get_supplier(supplier_id)
    supplier.rating = parse_rating(rating)
    db.session.commit()
    return supplier


def delete_supplier(supplier_id):
    supplier = get_supplier(supplier_id)
    stocked = Batch.query.filter(Batch.supplier_id == supplier.id, Batch.remaining_quantity > 0).count()
    if stocked:
        raise ValidationError("Cannot delete supplier with active batches")
    if Batch.query.filter_by(supplier_id=supplier.id).first() is not None:
        supplier.status = "inactive"
        db.session.commit()
        return False
    db.session.delete(supplier)
    db.session.commit()
    return True
