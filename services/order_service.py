"""Order lifecycle: creation, cancellation and the staff status state machine.

This module is the only writer of ``Order.status`` and ``Order.stock_deducted``.
Every transition locks the order row, applies the stock delta through
``services.stock_service`` and commits once; any failure rolls the whole unit back.
"""

import logging

from core.extensions import db
from core.imports import current_app, datetime, func
from core.auth import ADMIN, CUSTOMER, STAFF, ensure_order_owner, filter_details_for_viewer
from core.errors import ForbiddenError, InsufficientStockError, NotFoundError, ValidationError
from models.orderModels import (
    Order, OrderDetail, ORDER_STATUSES, PAYMENT_METHODS, PAYMENT_STATUSES, STATUS_RANK,
)
from models.paymentModels import Payment
from models.productModels import Product
from services import cart_service, notifications, pricing, stock_service

logger = logging.getLogger(__name__)

CUSTOMER_CANCEL_REASON = "Cancelled by customer"


def lock_order(order_id):
    order = (
        db.session.query(Order)
        .filter(Order.id == order_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not order:
        raise NotFoundError("Order not found")
    return order


def get_order(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def _parse_items(items):
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    parsed = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        product_id = item.get("productId")
        quantity = item.get("quantity")
        if product_id is None:
            raise ValidationError("productId is required for every item")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("quantity must be a positive integer")
        parsed.append((product_id, quantity))
    return parsed


def create_order(data, customer_id=None):
    """Create a pending order from an explicit item list.

    Stock is checked but not reserved; deduction happens on the first forward
    staff transition (or in the payment webhook for online orders).
    """
    data = data or {}
    recipient_name = (data.get("recipientName") or "").strip()
    phone = (data.get("phone") or "").strip()
    shipping_address = (data.get("shippingAddress") or "").strip()
    if not recipient_name or not phone or not shipping_address:
        raise ValidationError("Recipient name, phone and shipping address are required")

    payment_method = data.get("paymentMethod") or "cod"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"paymentMethod must be one of {', '.join(PAYMENT_METHODS)}")

    items = _parse_items(data.get("items"))

    requested = {}
    for product_id, quantity in items:
        requested[product_id] = requested.get(product_id, 0) + quantity

    products = {}
    for product_id, quantity in requested.items():
        product = db.session.get(Product, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        if product.stock_quantity < quantity:
            raise InsufficientStockError(product.id, product.stock_quantity, quantity)
        products[product_id] = product

    shipping_fee = current_app.config.get("SHIPPING_FEE", 1000)
    try:
        order = Order(
            customer_id=customer_id,
            recipient_name=recipient_name,
            phone=phone,
            email=data.get("email"),
            shipping_address=shipping_address,
            note=data.get("note"),
            status="pending",
            payment_status="pending",
            payment_method=payment_method,
            shipping_fee=shipping_fee,
            stock_deducted=False,
        )
        subtotal = 0
        for product_id, quantity in items:
            product = products[product_id]
            unit_price = pricing.effective_price(product)
            order.details.append(OrderDetail(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=unit_price,
            ))
            subtotal += quantity * unit_price

        order.subtotal = subtotal
        order.total_amount = subtotal + shipping_fee
        db.session.add(order)

        if customer_id is not None:
            cart_service.clear_cart(customer_id)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("order %s created (customer=%s method=%s total=%s)",
                order.id, customer_id, payment_method, order.total_amount)
    notifications.order_created(order)
    return order


def _cancel_pending_payments(order):
    now = datetime.utcnow()
    for payment in order.payments.filter(Payment.status == "pending").all():
        payment.status = "cancelled"
        payment.cancelled_at = now


def _restore(order, product_ids, actor_id):
    stock_service.restore_for_order(order, product_ids=product_ids, performed_by=actor_id)
    order.stock_deducted = bool(stock_service.outstanding_for_order(order.id))


def _deduct(order, details, actor_id):
    stock_service.deduct_for_order(order, details=details, performed_by=actor_id)
    order.stock_deducted = True


def cancel_by_customer(order_id, customer_id, reason=None):
    try:
        order = lock_order(order_id)
        ensure_order_owner(order, customer_id)
        if order.status != "pending":
            raise ValidationError("Only pending orders can be cancelled")

        if order.stock_deducted:
            _restore(order, None, customer_id)
        order.status = "cancelled"
        order.payment_status = "cancelled"
        order.cancel_reason = (reason or "").strip() or CUSTOMER_CANCEL_REASON
        _cancel_pending_payments(order)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("order %s cancelled by customer %s", order.id, customer_id)
    return order


def _promote_payment(order, new_status):
    if order.payment_status == "success":
        return
    if order.payment_method == "cod" and new_status == "delivered":
        order.payment_status = "success"
    elif order.payment_method in ("cash", "bank") and new_status == "completed":
        order.payment_status = "success"


def transition(order_id, new_status, actor_id, actor_role, note=None, cancel_reason=None,
               own_products_only=False):
    """Move an order to ``new_status`` on behalf of staff or an administrator.

    With ``own_products_only`` the stock side effects are limited to the lines
    whose product was created by ``actor_id``.
    """
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")
    if new_status == "cancelled" and not (cancel_reason or "").strip():
        raise ValidationError("cancelReason is required when cancelling an order")

    try:
        order = lock_order(order_id)
        old_status = order.status

        scope_details = order.details
        scope_products = None
        if own_products_only:
            scope_details = filter_details_for_viewer(order.details, actor_id, STAFF)
            if not scope_details:
                raise ForbiddenError("This order has no products managed by you")
            scope_products = {d.product_id for d in scope_details}

        if old_status == "cancelled":
            if new_status != "cancelled":
                raise ValidationError("Cancelled orders cannot be reopened")
        elif new_status == "cancelled":
            if order.stock_deducted:
                _restore(order, scope_products, actor_id)
            order.payment_status = "cancelled"
            order.cancel_reason = cancel_reason.strip()
            _cancel_pending_payments(order)
        elif new_status != old_status:
            if order.payment_method != "online":
                forward = STATUS_RANK[old_status] == 0 and STATUS_RANK[new_status] > 0
                backward = STATUS_RANK[old_status] > 0 and STATUS_RANK[new_status] == 0
                if forward and not order.stock_deducted:
                    _deduct(order, scope_details, actor_id)
                elif backward and order.stock_deducted:
                    _restore(order, scope_products, actor_id)
            _promote_payment(order, new_status)

        order.status = new_status
        order.staff_id = actor_id
        if note:
            order.staff_note = note
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("order %s %s -> %s by %s %s (stockDeducted=%s)",
                order.id, old_status, new_status, actor_role, actor_id, order.stock_deducted)
    if old_status != new_status:
        notifications.order_status_changed(order)
    return order


def set_payment_status(order_id, payment_status, actor_id, note=None):
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"paymentStatus must be one of {', '.join(PAYMENT_STATUSES)}")
    try:
        order = lock_order(order_id)
        if order.payment_method == "online":
            raise ValidationError("Payment status of online orders is managed by the payment provider")
        if order.status == "cancelled" and payment_status == "success":
            raise ValidationError("Cannot mark a cancelled order as paid")
        order.payment_status = payment_status
        order.staff_id = actor_id
        if note:
            order.staff_note = note
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("order %s paymentStatus set to %s by %s", order.id, payment_status, actor_id)
    return order


def view_order(order, account_id, role):
    """Serialize an order for the caller, or refuse if they may not see it."""
    if role == CUSTOMER:
        ensure_order_owner(order, account_id)
        return order.to_dict()
    if role == STAFF:
        visible = filter_details_for_viewer(order.details, account_id, role)
        if not visible:
            raise ForbiddenError("Unauthorized access")
        return order.to_dict(details=visible)
    if role == ADMIN:
        return order.to_dict()
    raise ForbiddenError("Unauthorized access")


def orders_for_viewer(account_id, role):
    query = Order.query
    if role == CUSTOMER:
        query = query.filter(Order.customer_id == account_id)
    orders = query.order_by(Order.order_date.desc(), Order.id.desc()).all()

    result = []
    for order in orders:
        visible = filter_details_for_viewer(order.details, account_id, role)
        if role == STAFF and not visible:
            continue
        result.append(order.to_dict(details=visible))
    return result


def list_orders(status=None, payment_status=None, page=1, limit=10):
    query = Order.query
    if status:
        query = query.filter(Order.status == status)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)
    total = query.count()
    orders = (
        query.order_by(Order.order_date.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "orders": [o.to_dict() for o in orders],
        "total": total,
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit if limit else 0,
    }


def order_stats(recent_limit=5):
    by_status = dict(
        db.session.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )
    by_payment = dict(
        db.session.query(Order.payment_status, func.count(Order.id)).group_by(Order.payment_status).all()
    )
    revenue = (
        db.session.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.payment_status == "success")
        .scalar()
    )
    recent = Order.query.order_by(Order.order_date.desc(), Order.id.desc()).limit(recent_limit).all()
    return {
        "totalOrders": sum(by_status.values()),
        "totalRevenue": float(revenue or 0),
        "byStatus": {s: by_status.get(s, 0) for s in ORDER_STATUSES},
        "byPaymentStatus": {s: by_payment.get(s, 0) for s in PAYMENT_STATUSES},
        "recentOrders": [o.to_dict() for o in recent],
    }
