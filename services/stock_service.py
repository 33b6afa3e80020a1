"""Inventory ledger: every change to product or batch stock goes through here.

Callers own the transaction. Nothing in this module commits; it only adds
rows and mutates locked objects on ``db.session``.
"""

import logging
from collections import OrderedDict, defaultdict

from core.extensions import db
from core.imports import date, func
from core.errors import InsufficientStockError, NotFoundError, ValidationError
from models.productModels import Product
from models.inventoryModels import Batch, StockMovement, MOVEMENT_REASONS

logger = logging.getLogger(__name__)

ORDER_REFERENCE = "Order"


def lock_product(product_id):
    product = (
        db.session.query(Product)
        .filter(Product.id == product_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def lock_batch(batch_id):
    batch = (
        db.session.query(Batch)
        .filter(Batch.id == batch_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not batch:
        raise NotFoundError(f"Batch {batch_id} not found")
    return batch


def record_movement(product_id, movement_type, quantity, reason, unit_cost=0, batch=None,
                    reference=None, reference_id=None, reference_model=None, location=None,
                    notes=None, performed_by=None, status="completed"):
    movement = StockMovement(
        movement_type=movement_type,
        product_id=product_id,
        batch_id=batch.id if batch is not None else None,
        quantity=quantity,
        unit_cost=unit_cost or 0,
        total_value=abs(quantity) * (unit_cost or 0),
        reason=reason,
        reference=reference,
        reference_id=reference_id,
        reference_model=reference_model,
        location=location or (batch.location if batch is not None else "main"),
        notes=notes,
        performed_by=performed_by,
        status=status,
    )
    db.session.add(movement)
    logger.info(
        "stock movement %s product=%s batch=%s qty=%+d reason=%s ref=%s:%s",
        movement_type, product_id, movement.batch_id, quantity, reason, reference_model, reference_id,
    )
    return movement


def is_batch_tracked(product_id):
    return db.session.query(Batch.id).filter(
        Batch.product_id == product_id,
        Batch.status == "active",
    ).first() is not None


def available_batches(product_id, today=None, lock=False):
    """Active, unexpired batches with stock, soonest expiry first."""
    today = today or date.today()
    query = (
        Batch.query
        .filter(
            Batch.product_id == product_id,
            Batch.status == "active",
            Batch.remaining_quantity > 0,
            Batch.expiry_date > today,
        )
        .order_by(Batch.expiry_date.asc(), Batch.id.asc())
    )
    if lock:
        query = query.with_for_update().populate_existing()
    return query.all()


def untracked_quantity(product):
    """Units counted on the product but not held by any active batch."""
    in_batches = (
        db.session.query(func.coalesce(func.sum(Batch.remaining_quantity), 0))
        .filter(Batch.product_id == product.id, Batch.status == "active")
        .scalar()
    )
    return max(product.stock_quantity - int(in_batches or 0), 0)


def allocate_from_batches(product, quantity, order_id, performed_by=None, today=None):
    """Consume ``quantity`` units, loose stock first, then FIFO by expiry.

    Raises before touching anything if short.
    """
    batches = available_batches(product.id, today=today, lock=True)
    loose = untracked_quantity(product)
    total_available = loose + sum(b.remaining_quantity for b in batches)
    if total_available < quantity:
        raise InsufficientStockError(product.id, total_available, quantity)
    if product.stock_quantity < quantity:
        raise InsufficientStockError(product.id, product.stock_quantity, quantity)

    remaining = quantity
    allocations = []
    if loose:
        take = min(loose, remaining)
        record_movement(
            product.id, "out", -take, "sale",
            reference=f"Order {order_id}",
            reference_id=order_id,
            reference_model=ORDER_REFERENCE,
            notes="Sold from stock outside batches",
            performed_by=performed_by,
        )
        allocations.append({"batchId": None, "batchCode": None, "quantity": take, "unitCost": 0})
        remaining -= take

    for batch in batches:
        if remaining <= 0:
            break
        take = min(batch.remaining_quantity, remaining)
        batch.remaining_quantity -= take
        record_movement(
            product.id, "out", -take, "sale",
            unit_cost=batch.unit_cost,
            batch=batch,
            reference=f"Order {order_id}",
            reference_id=order_id,
            reference_model=ORDER_REFERENCE,
            notes=f"Sold from batch {batch.batch_code}",
            performed_by=performed_by,
        )
        allocations.append({
            "batchId": batch.id,
            "batchCode": batch.batch_code,
            "quantity": take,
            "unitCost": batch.unit_cost,
        })
        remaining -= take

    product.stock_quantity -= quantity
    return allocations


def required_by_product(details):
    required = OrderedDict()
    for detail in details:
        if detail.product_id is None:
            raise NotFoundError(f"Product for order line {detail.id} no longer exists")
        required[detail.product_id] = required.get(detail.product_id, 0) + detail.quantity
    return required


def outstanding_for_order(order_id):
    """Units still deducted for an order, keyed by ``(product_id, batch_id)``."""
    rows = (
        db.session.query(
            StockMovement.product_id,
            StockMovement.batch_id,
            func.sum(StockMovement.quantity),
        )
        .filter(
            StockMovement.reference_model == ORDER_REFERENCE,
            StockMovement.reference_id == order_id,
        )
        .group_by(StockMovement.product_id, StockMovement.batch_id)
        .all()
    )
    outstanding = {}
    for product_id, batch_id, net in rows:
        if net and net < 0:
            outstanding[(product_id, batch_id)] = -int(net)
    return outstanding


def outstanding_products(order_id):
    totals = defaultdict(int)
    for (product_id, _), qty in outstanding_for_order(order_id).items():
        totals[product_id] += qty
    return dict(totals)


def deduct_for_order(order, details=None, performed_by=None, today=None):
    """Take stock for every order line that is not already deducted.

    Lines are grouped per product. Products already carrying an outstanding
    deduction for this order are skipped, so calling this twice never deducts
    twice.
    """
    if details is None:
        details = order.details
    already = outstanding_products(order.id)
    deducted = {}

    # products are locked in id order
    for product_id, quantity in sorted(required_by_product(details).items()):
        if already.get(product_id):
            continue
        product = lock_product(product_id)
        if is_batch_tracked(product_id):
            allocate_from_batches(product, quantity, order.id, performed_by=performed_by, today=today)
        else:
            if product.stock_quantity < quantity:
                raise InsufficientStockError(product_id, product.stock_quantity, quantity)
            product.stock_quantity -= quantity
            record_movement(
                product_id, "out", -quantity, "sale",
                reference=f"Order {order.id}",
                reference_id=order.id,
                reference_model=ORDER_REFERENCE,
                performed_by=performed_by,
            )
        deducted[product_id] = quantity
    return deducted


def restore_for_order(order, product_ids=None, performed_by=None):
    """Give back whatever is still deducted for ``order`` (optionally only some products)."""
    restored = defaultdict(int)
    for (product_id, batch_id), quantity in sorted(outstanding_for_order(order.id).items(),
                                                   key=lambda kv: (kv[0][0], kv[0][1] or 0)):
        if product_ids is not None and product_id not in product_ids:
            continue
        product = lock_product(product_id)
        batch = None
        if batch_id is not None:
            batch = lock_batch(batch_id)
            batch.remaining_quantity += quantity
            if batch.status == "active":
                product.stock_quantity += quantity
        else:
            product.stock_quantity += quantity
        record_movement(
            product_id, "return", quantity, "return",
            unit_cost=batch.unit_cost if batch is not None else 0,
            batch=batch,
            reference=f"Order {order.id}",
            reference_id=order.id,
            reference_model=ORDER_REFERENCE,
            performed_by=performed_by,
        )
        restored[product_id] += quantity
    return dict(restored)


def apply_manual_movement(product_id, movement_type, quantity, reason, performed_by, batch_id=None,
                          unit_cost=None, location=None, notes=None, reference=None):
    """Record a staff-entered adjustment, return or transfer."""
    if movement_type not in ("adjustment", "return", "transfer"):
        raise ValidationError("Only adjustment, return and transfer movements can be entered manually")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity == 0:
        raise ValidationError("quantity must be a non-zero integer")
    if movement_type == "return" and quantity < 0:
        raise ValidationError("Return quantity must be positive")
    if reason not in MOVEMENT_REASONS:
        raise ValidationError(f"reason must be one of {', '.join(MOVEMENT_REASONS)}")

    product = lock_product(product_id)
    batch = lock_batch(batch_id) if batch_id else None
    if batch is not None and batch.product_id != product.id:
        raise ValidationError("Batch does not belong to this product")

    if movement_type == "transfer":
        if batch is not None and location:
            batch.location = location
        delta = 0
    else:
        delta = quantity

    if delta:
        if batch is not None:
            new_remaining = batch.remaining_quantity + delta
            if new_remaining < 0 or new_remaining > batch.quantity:
                raise ValidationError("Adjustment would put the batch outside 0..quantity")
            batch.remaining_quantity = new_remaining
            if batch.status == "active":
                product.stock_quantity += delta
        else:
            product.stock_quantity += delta
        if product.stock_quantity < 0:
            raise InsufficientStockError(product.id, product.stock_quantity - delta, -delta)

    if unit_cost is None:
        unit_cost = batch.unit_cost if batch is not None else 0
    return record_movement(
        product.id, movement_type, quantity, reason,
        unit_cost=unit_cost,
        batch=batch,
        reference=reference,
        location=location,
        notes=notes,
        performed_by=performed_by,
    )
