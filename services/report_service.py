"""Inventory reports and ledger queries."""

from core.extensions import db
from core.imports import current_app, date, datetime, timedelta, func
from core.errors import NotFoundError, ValidationError
from models.inventoryModels import Batch, StockMovement, MOVEMENT_TYPES
from models.productModels import Product

DEFAULT_LOW_STOCK = 10


def _threshold(value=None):
    if value is None:
        return current_app.config.get("LOW_STOCK_THRESHOLD", DEFAULT_LOW_STOCK)
    if value < 0:
        raise ValidationError("threshold cannot be negative")
    return value


def low_stock(threshold=None):
    threshold = _threshold(threshold)
    products = (
        Product.query
        .filter(Product.stock_quantity < threshold)
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )
    return [p.to_dict() for p in products]


def expiring_soon(days=30, today=None):
    if days < 0:
        raise ValidationError("days cannot be negative")
    today = today or date.today()
    batches = (
        Batch.query
        .filter(
            Batch.status == "active",
            Batch.remaining_quantity > 0,
            Batch.expiry_date >= today,
            Batch.expiry_date <= today + timedelta(days=days),
        )
        .order_by(Batch.expiry_date.asc(), Batch.id.asc())
        .all()
    )
    return [b.to_dict() for b in batches]


def expired(today=None):
    today = today or date.today()
    batches = (
        Batch.query
        .filter(
            Batch.status == "active",
            Batch.expiry_date < today,
            Batch.remaining_quantity > 0,
        )
        .order_by(Batch.expiry_date.asc(), Batch.id.asc())
        .all()
    )
    return [b.to_dict() for b in batches]


def inventory_report(threshold=None):
    threshold = _threshold(threshold)
    products = Product.query.order_by(Product.name.asc()).all()

    inventory = []
    total_value = 0.0
    for product in products:
        value = (product.stock_quantity or 0) * (product.price or 0)
        total_value += value
        inventory.append({
            "productId": product.id,
            "name": product.name,
            "category": product.category,
            "stockQuantity": product.stock_quantity,
            "price": product.price,
            "stockValue": value,
            "activeBatches": product.batches.filter(Batch.status == "active").count(),
        })

    low = [row for row in inventory if 0 < row["stockQuantity"] < threshold]
    out = [row for row in inventory if row["stockQuantity"] == 0]
    return {
        "inventory": inventory,
        "lowStock": low,
        "outOfStock": out,
        "summary": {
            "totalProducts": len(inventory),
            "totalStockValue": total_value,
            "lowStockCount": len(low),
            "outOfStockCount": len(out),
            "threshold": threshold,
        },
    }


def movement_summary(start=None, end=None):
    query = db.session.query(
        StockMovement.movement_type,
        func.count(StockMovement.id),
        func.coalesce(func.sum(StockMovement.quantity), 0),
        func.coalesce(func.sum(StockMovement.total_value), 0),
    )
    if start:
        query = query.filter(StockMovement.created_at >= start)
    if end:
        query = query.filter(StockMovement.created_at <= end)
    rows = query.group_by(StockMovement.movement_type).all()

    by_type = {t: {"count": 0, "totalQuantity": 0, "totalValue": 0.0} for t in MOVEMENT_TYPES}
    for movement_type, count, quantity, value in rows:
        by_type[movement_type] = {
            "count": count,
            "totalQuantity": int(quantity),
            "totalValue": float(value),
        }
    return {"summary": by_type, "totalMovements": sum(v["count"] for v in by_type.values())}


def get_movement(movement_id):
    movement = db.session.get(StockMovement, movement_id)
    if not movement:
        raise NotFoundError("Stock movement not found")
    return movement


def list_movements(movement_type=None, product_id=None, batch_id=None, reason=None, status=None,
                   reference_model=None, reference_id=None, page=1, limit=20):
    query = StockMovement.query
    if movement_type:
        query = query.filter(StockMovement.movement_type == movement_type)
    if product_id:
        query = query.filter(StockMovement.product_id == product_id)
    if batch_id:
        query = query.filter(StockMovement.batch_id == batch_id)
    if reason:
        query = query.filter(StockMovement.reason == reason)
    if status:
        query = query.filter(StockMovement.status == status)
    if reference_model:
        query = query.filter(StockMovement.reference_model == reference_model)
    if reference_id:
        query = query.filter(StockMovement.reference_id == reference_id)

    total = query.count()
    movements = (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "movements": [m.to_dict() for m in movements],
        "total": total,
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit if limit else 0,
    }


def approve_movement(movement_id, actor_id):
    movement = get_movement(movement_id)
    if movement.status == "rejected":
        raise ValidationError("Rejected movements cannot be approved")
    if movement.status == "approved":
        return movement
    movement.status = "approved"
    movement.approved_by = actor_id
    movement.approved_at = datetime.utcnow()
    db.session.commit()
    return movement
