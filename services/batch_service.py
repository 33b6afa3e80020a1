import logging
import random

from core.extensions import db
from core.imports import date, datetime, timedelta, or_, IntegrityError
from core.errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from models.inventoryModels import Batch, Supplier, StockMovement, BATCH_STATUSES
from models.productModels import Product
from services import stock_service

logger = logging.getLogger(__name__)

EXPIRY_FILTERS = ("expired", "expiring_soon", "expiring_warning", "good")


def generate_batch_code(today=None):
    today = today or date.today()
    return f"B{today:%y%m%d}{random.randint(0, 999):03d}"


def _unique_batch_code():
    for _ in range(20):
        code = generate_batch_code()
        if not Batch.query.filter_by(batch_code=code).first():
            return code
    raise ConflictError("Could not allocate a unique batch code, try again")


def parse_date(value, field):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field} is required")
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date")


def validate_dates(manufacturing_date, expiry_date, today=None):
    today = today or date.today()
    if manufacturing_date > today:
        raise ValidationError("manufacturingDate cannot be in the future")
    if expiry_date <= manufacturing_date:
        raise ValidationError("expiryDate must be after manufacturingDate")
    if expiry_date <= today:
        raise ValidationError("expiryDate must be in the future")


def get_batch(batch_id):
    batch = db.session.get(Batch, batch_id)
    if not batch:
        raise NotFoundError("Batch not found")
    return batch


def create_batch(data, actor_id, today=None):
    data = data or {}
    required = ("productId", "supplierId", "quantity", "unitCost", "manufacturingDate", "expiryDate", "location")
    missing = [f for f in required if data.get(f) in (None, "")]
    if missing:
        raise ValidationError("Missing required fields", fields=missing)

    quantity = data["quantity"]
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer")
    try:
        unit_cost = float(data["unitCost"])
    except (TypeError, ValueError):
        raise ValidationError("unitCost must be a number")
    if unit_cost < 0:
        raise ValidationError("unitCost cannot be negative")

    manufacturing_date = parse_date(data["manufacturingDate"], "manufacturingDate")
    expiry_date = parse_date(data["expiryDate"], "expiryDate")
    validate_dates(manufacturing_date, expiry_date, today)

    if not db.session.get(Product, data["productId"]):
        raise NotFoundError("Product not found")
    if not db.session.get(Supplier, data["supplierId"]):
        raise NotFoundError("Supplier not found")

    total_cost = quantity * unit_cost
    try:
        batch = Batch(
            batch_code=_unique_batch_code(),
            product_id=data["productId"],
            supplier_id=data["supplierId"],
            quantity=quantity,
            remaining_quantity=quantity,
            unit_cost=unit_cost,
            total_cost=total_cost,
            manufacturing_date=manufacturing_date,
            expiry_date=expiry_date,
            location=data["location"].strip(),
            notes=data.get("notes"),
            status="pending",
            created_by=actor_id,
        )
        db.session.add(batch)
        # atomic increment, not read-modify-write
        Supplier.query.filter_by(id=data["supplierId"]).update({
            Supplier.total_orders: Supplier.total_orders + 1,
            Supplier.total_value: Supplier.total_value + total_cost,
        }, synchronize_session=False)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Batch code already exists, try again")
    except Exception:
        db.session.rollback()
        raise

    logger.info("batch %s created for product %s (%s units)", batch.batch_code, batch.product_id, quantity)
    return batch


def update_batch(batch_id, data, actor_id):
    data = data or {}
    batch = get_batch(batch_id)

    if "location" in data and data["location"]:
        batch.location = data["location"].strip()
    if "notes" in data:
        batch.notes = data["notes"]
    if data.get("qualityCheck") is not None:
        qc = data["qualityCheck"]
        if not isinstance(qc, dict):
            raise ValidationError("qualityCheck must be an object")
        if "passed" in qc:
            batch.qc_passed = bool(qc["passed"])
        if "notes" in qc:
            batch.qc_notes = qc["notes"]
        batch.qc_checked_by = actor_id
        batch.qc_checked_at = datetime.utcnow()
    if data.get("status"):
        status = data["status"]
        if status not in BATCH_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(BATCH_STATUSES)}")
        if status in ("active", "disposed"):
            raise ValidationError("Use the approve or dispose endpoints to change to this status")
        if batch.status == "active" and status != "active":
            raise ValidationError("Active batches can only leave stock through disposal")
        batch.status = status

    db.session.commit()
    return batch


def approve_batch(batch_id, actor_id):
    try:
        batch = stock_service.lock_batch(batch_id)
        if batch.status == "active":
            raise ValidationError("Batch is already active")
        if batch.status not in ("pending", "received"):
            raise ValidationError(f"A {batch.status} batch cannot be approved")
        if not batch.qc_passed:
            raise ValidationError("Batch must pass quality check before approval.")

        product = stock_service.lock_product(batch.product_id)
        batch.status = "active"
        batch.approved_by = actor_id
        batch.approved_at = datetime.utcnow()

        stock_service.record_movement(
            product.id, "in", batch.quantity, "purchase",
            unit_cost=batch.unit_cost,
            batch=batch,
            reference=batch.batch_code,
            reference_id=batch.id,
            reference_model="Batch",
            notes=f"Received batch {batch.batch_code}",
            performed_by=actor_id,
        )
        product.stock_quantity += batch.quantity
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("batch %s approved by %s", batch.batch_code, actor_id)
    return batch


def dispose_batch(batch_id, quantity, reason, actor_id, notes=None):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer")
    if not reason:
        raise ValidationError("reason is required")

    try:
        batch = stock_service.lock_batch(batch_id)
        if quantity > batch.remaining_quantity:
            raise ValidationError("Disposal quantity exceeds remaining quantity")
        product = stock_service.lock_product(batch.product_id)

        counted_in_stock = batch.status == "active"
        if counted_in_stock and product.stock_quantity < quantity:
            raise InsufficientStockError(product.id, product.stock_quantity, quantity)
        batch.remaining_quantity -= quantity
        if batch.remaining_quantity == 0:
            batch.status = "disposed"

        stock_service.record_movement(
            product.id, "disposal", -quantity, "disposal",
            unit_cost=batch.unit_cost,
            batch=batch,
            reference=batch.batch_code,
            reference_id=batch.id,
            reference_model="Batch",
            notes=f"Disposed from batch {batch.batch_code}: {reason}. {notes or ''}".strip(),
            performed_by=actor_id,
        )
        if counted_in_stock:
            product.stock_quantity -= quantity
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("disposed %s units of batch %s", quantity, batch.batch_code)
    return batch


def delete_batch(batch_id):
    batch = get_batch(batch_id)
    if batch.remaining_quantity > 0:
        raise ValidationError("Cannot delete batch with remaining quantity")
    try:
        # ledger rows outlive the batch; only the link is dropped
        StockMovement.query.filter_by(batch_id=batch.id).update(
            {StockMovement.batch_id: None}, synchronize_session=False
        )
        db.session.delete(batch)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("batch %s deleted", batch.batch_code)


def list_batches(status=None, product_id=None, supplier_id=None, expiry_status=None, search=None,
                 page=1, limit=10, today=None):
    today = today or date.today()
    query = Batch.query
    if status:
        query = query.filter(Batch.status == status)
    if product_id:
        query = query.filter(Batch.product_id == product_id)
    if supplier_id:
        query = query.filter(Batch.supplier_id == supplier_id)
    if expiry_status == "expired":
        query = query.filter(Batch.expiry_date < today)
    elif expiry_status == "expiring_soon":
        query = query.filter(Batch.expiry_date >= today, Batch.expiry_date <= today + timedelta(days=30))
    elif expiry_status == "expiring_warning":
        query = query.filter(Batch.expiry_date >= today, Batch.expiry_date <= today + timedelta(days=90))
    elif expiry_status == "good":
        query = query.filter(Batch.expiry_date > today + timedelta(days=90))
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Batch.batch_code.ilike(like), Batch.notes.ilike(like)))

    total = query.count()
    batches = query.order_by(Batch.created_at.desc(), Batch.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "batches": [b.to_dict() for b in batches],
        "total": total,
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit if limit else 0,
    }
