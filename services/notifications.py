import logging

from markupsafe import escape

from core.extensions import mail
from core.imports import Message

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "pending": "is waiting for confirmation",
    "processing": "is being prepared",
    "shipping": "has been handed to the carrier",
    "delivered": "has been delivered",
    "completed": "is complete",
    "cancelled": "has been cancelled",
}


def send_email(to, subject, body):
    msg = Message(subject=subject, recipients=[to])
    msg.html = body
    try:
        mail.send(msg)
    except Exception:
        logger.exception("Error sending email to %s", to)


def _recipient(order):
    if order.email:
        return order.email
    if order.customer is not None:
        return order.customer.email
    return None


def order_created(order):
    to = _recipient(order)
    if not to:
        return
    lines = "".join(
        f"<li>{escape(d.product_name)} x {d.quantity} = {d.line_total:,.0f}</li>" for d in order.details
    )
    body = (
        f"<p>Hi {escape(order.recipient_name)},</p>"
        f"<p>We received your order #{order.id}.</p>"
        f"<ul>{lines}</ul>"
        f"<p>Shipping: {order.shipping_fee:,.0f}<br>Total: {order.total_amount:,.0f}</p>"
    )
    send_email(to, f"Order #{order.id} received", body)


def order_status_changed(order):
    to = _recipient(order)
    if not to:
        return
    label = STATUS_LABELS.get(order.status, order.status)
    body = f"<p>Hi {escape(order.recipient_name)},</p><p>Your order #{order.id} {label}.</p>"
    if order.status == "cancelled" and order.cancel_reason:
        body += f"<p>Reason: {escape(order.cancel_reason)}</p>"
    send_email(to, f"Order #{order.id} update", body)
