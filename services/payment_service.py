"""Online payments through PayOS: checkout sessions, webhooks, expiry."""

import logging
import time

from core.extensions import db, payos
from core.imports import current_app, datetime, timedelta
from core.auth import ensure_order_owner
from core.errors import ApiError, ConflictError, ForbiddenError, NotFoundError, UpstreamError, ValidationError
from models.orderModels import Order
from models.paymentModels import Payment
from services import cart_service, order_service, stock_service

logger = logging.getLogger(__name__)

ONLINE_METHODS = ("online", "bank")
SUCCESS_CODE = "00"


def _next_order_code():
    """Last nine digits of the epoch in ms, bumped until unused."""
    code = int(str(int(time.time() * 1000))[-9:])
    while Payment.query.filter_by(provider_order_code=str(code)).first() is not None:
        code = (code + 1) % 1_000_000_000
    return code


def _mark_failed(payment, now=None):
    payment.status = "failed"
    payment.cancelled_at = now or datetime.utcnow()


def _release_stale_payment(order):
    """Return a still-usable pending payment, failing any that are stale.

    The caller holds the order lock and commits.
    """
    existing = (
        Payment.query
        .filter_by(order_id=order.id, status="pending")
        .order_by(Payment.created_at.desc())
        .all()
    )
    reuse_window = timedelta(minutes=current_app.config.get("PENDING_PAYMENT_REUSE_MINUTES", 30))
    now = datetime.utcnow()
    still_valid = None
    for payment in existing:
        if still_valid is None and now - payment.created_at < reuse_window:
            try:
                info = payos.get_payment_link_information(payment.provider_order_code)
            except UpstreamError:
                logger.info("payment %s could not be checked with PayOS; replacing it", payment.id)
                info = None
            if info and info.get("status") == "PENDING":
                still_valid = payment
                continue
        logger.info("payment %s is no longer valid, marking as failed", payment.id)
        _mark_failed(payment, now)
    return still_valid


def _pending_conflict(payment):
    return ConflictError(
        "A pending payment already exists for this order",
        status_code=400,
        data={"paymentUrl": payment.payment_url, "paymentId": payment.id},
    )


def _payable_order(order_id, account_id):
    order = order_service.lock_order(order_id)
    ensure_order_owner(order, account_id)
    if order.payment_method not in ONLINE_METHODS:
        raise ValidationError("Online payment is only available for online or bank transfer orders")
    if order.status == "cancelled":
        raise ValidationError("Order has been cancelled")
    if order.payment_status == "success":
        raise ConflictError("Order has already been paid", status_code=400)
    return order


def create_payment(order_id, account_id):
    """Open a PayOS checkout for an order.

    The order row is locked while pending payments are checked and again while
    the new one is inserted; only the provider call runs unlocked.
    """
    if not order_id:
        raise ValidationError("Order ID is required")

    try:
        order = _payable_order(order_id, account_id)
        existing = _release_stale_payment(order)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    if existing is not None:
        raise _pending_conflict(existing)

    valid_items = [
        {
            "name": (detail.product.name if detail.product else detail.product_name) or "Product",
            "price": int(round(detail.unit_price)),
            "quantity": detail.quantity,
        }
        for detail in order.details
        if detail.product is not None and detail.quantity > 0 and detail.unit_price > 0
    ]
    if not valid_items:
        raise ValidationError("No valid items found in order")

    subtotal = sum(item["price"] * item["quantity"] for item in valid_items)
    if subtotal <= 0:
        raise ValidationError("Order total amount must be greater than 0")
    shipping_fee = current_app.config.get("SHIPPING_FEE", 1000)
    total_amount = subtotal + shipping_fee

    order_code = _next_order_code()
    payment_data = {
        "orderCode": order_code,
        "amount": total_amount,
        "description": f"Order {order.id} (+{shipping_fee} ship)"[:25],
        "items": valid_items,
        "returnUrl": current_app.config.get("PAYOS_RETURN_URL"),
        "cancelUrl": current_app.config.get("PAYOS_CANCEL_URL"),
    }
    logger.info("creating PayOS link for order %s code=%s amount=%s", order.id, order_code, total_amount)

    # no payment row is written if this raises
    link = payos.create_payment_link(payment_data)

    try:
        order = _payable_order(order_id, account_id)
        concurrent = Payment.query.filter_by(order_id=order.id, status="pending").first()
        if concurrent is not None:
            logger.warning("order %s got payment %s while link %s was being created; dropping the link",
                           order.id, concurrent.id, order_code)
            raise _pending_conflict(concurrent)

        now = datetime.utcnow()
        payment = Payment(
            order_id=order.id,
            user_id=account_id,
            amount=total_amount,
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            provider_order_code=str(order_code),
            status="pending",
            payment_url=link.get("checkoutUrl"),
            payment_method=order.payment_method,
            description=payment_data["description"],
            payment_timeout=now + timedelta(seconds=current_app.config.get("PAYMENT_TIMEOUT_SECONDS", 120)),
            created_at=now,
        )
        db.session.add(payment)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return payment


def get_payment(payment_id, account_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    if payment.user_id != account_id:
        raise ForbiddenError("Not authorized to view this payment")
    return payment


def reset_payments(order_id, account_id):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    ensure_order_owner(order, account_id)

    now = datetime.utcnow()
    try:
        modified = (
            Payment.query
            .filter_by(order_id=order.id, status="pending")
            .update({Payment.status: "failed", Payment.cancelled_at: now}, synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("reset %s pending payments for order %s", modified, order.id)
    return modified


def _find_payment(order_code, lock=False):
    query = Payment.query.filter_by(provider_order_code=str(order_code))
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def _settle_success(payment_id, data):
    order = order_service.lock_order(db.session.get(Payment, payment_id).order_id)
    payment = _find_payment(data["orderCode"], lock=True)

    if payment.is_terminal:
        return {"message": "Payment already processed",
                "data": {"paymentId": payment.id, "orderId": payment.order_id, "status": payment.status}}
    if order.status == "cancelled":
        logger.warning("success webhook for cancelled order %s ignored", order.id)
        return {"message": "Order has been cancelled; no action taken",
                "data": {"paymentId": payment.id, "orderId": order.id, "status": payment.status}}

    payment.status = "completed"
    payment.transaction_id = data.get("transactionDateTime") or data.get("reference")
    payment.paid_at = datetime.utcnow()

    stock_service.deduct_for_order(order)
    order.stock_deducted = True
    order.payment_status = "success"

    if order.customer_id is not None:
        cart_service.clear_cart(order.customer_id)

    logger.info("payment %s completed for order %s", payment.id, order.id)
    return {"message": "Payment processed successfully",
            "data": {"paymentId": payment.id, "orderId": order.id, "status": "completed"}}


def _settle_failure(payment_id, data):
    order = order_service.lock_order(db.session.get(Payment, payment_id).order_id)
    payment = _find_payment(data["orderCode"], lock=True)

    if payment.is_terminal:
        return {"message": "Payment already processed",
                "data": {"paymentId": payment.id, "orderId": payment.order_id, "status": payment.status}}

    _mark_failed(payment)
    if order.payment_status == "pending":
        order.payment_status = "failed"
    return {"message": "Failed payment processed",
            "data": {"paymentId": payment.id, "orderId": order.id, "status": "failed"}}


def handle_webhook(payload, signature_required=False):
    """Apply a PayOS webhook. Returns ``(body, status_code)``."""
    if not payload:
        return {"success": True, "message": "Webhook endpoint is working. Send actual PayOS data."}, 200
    if not isinstance(payload, dict):
        return {"success": False, "message": "Invalid webhook data format. Expected a JSON object."}, 400

    code = payload.get("code")
    data = payload.get("data")
    if not code or not isinstance(data, dict):
        return {"success": False, "message": "Invalid webhook data format. Expected PayOS webhook structure."}, 400
    if data.get("orderCode") is None:
        return {"success": False, "message": "Missing orderCode in webhook data"}, 400
    if signature_required and not payos.verify_webhook_data(data, payload.get("signature")):
        return {"success": False, "message": "Invalid signature"}, 400

    payment = _find_payment(data["orderCode"])
    if payment is None:
        logger.info("no payment found for orderCode %s", data["orderCode"])
        return {"success": True,
                "message": f"No payment found for orderCode: {data['orderCode']}. "
                           "This may be a test or invalid orderCode."}, 200

    settle = _settle_success if code == SUCCESS_CODE else _settle_failure
    try:
        result = settle(payment.id, data)
        db.session.commit()
    except ApiError as e:
        # provider redelivers on 5xx
        db.session.rollback()
        logger.error("webhook for orderCode %s rolled back: %s", data["orderCode"], e.message)
        return {"success": False, "message": "Error processing webhook", "error": e.message}, 500
    except Exception:
        db.session.rollback()
        raise
    result["success"] = True
    return result, 200


def expire_stale_payments(now=None):
    """Fail online/bank payments whose checkout window has passed. Safe to re-run."""
    now = now or datetime.utcnow()
    stale = (
        Payment.query
        .filter(
            Payment.status == "pending",
            Payment.is_expired.is_(False),
            Payment.payment_method.in_(ONLINE_METHODS),
            Payment.payment_timeout < now,
        )
        .all()
    )
    try:
        for payment in stale:
            payment.status = "failed"
            payment.is_expired = True
            payment.cancelled_at = now
            order = db.session.get(Order, payment.order_id)
            if order is not None and order.payment_status == "pending":
                order.payment_status = "expired"
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    if stale:
        logger.info("expired %d stale payment(s)", len(stale))
    return len(stale)
