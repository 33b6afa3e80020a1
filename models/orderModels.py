from core.extensions import db
from core.imports import datetime

ORDER_STATUSES = ("pending", "processing", "shipping", "delivered", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "success", "failed", "cancelled", "refunded", "expired")
PAYMENT_METHODS = ("cod", "online", "cash", "bank")

# cancelled has no rank
STATUS_RANK = {
    "pending": 0,
    "processing": 1,
    "shipping": 2,
    "delivered": 3,
    "completed": 4,
}


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)
    customer = db.relationship("Account", foreign_keys=[customer_id], backref="orders")
    staff_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)

    recipient_name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(100), nullable=True)
    shipping_address = db.Column(db.String(500), nullable=False)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(20), nullable=False, default="cod")

    subtotal = db.Column(db.Float, nullable=False, default=0)
    shipping_fee = db.Column(db.Float, nullable=False, default=0)
    total_amount = db.Column(db.Float, nullable=False, default=0)

    cancel_reason = db.Column(db.String(500), nullable=True)
    staff_note = db.Column(db.Text, nullable=True)
    stock_deducted = db.Column(db.Boolean, nullable=False, default=False)

    order_date = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    details = db.relationship("OrderDetail", backref="order", cascade="all, delete-orphan",
                              order_by="OrderDetail.id")
    payments = db.relationship("Payment", backref="order", lazy="dynamic")

    def to_dict(self, details=None):
        if details is None:
            details = self.details
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "staffId": self.staff_id,
            "recipientName": self.recipient_name,
            "phone": self.phone,
            "email": self.email,
            "shippingAddress": self.shipping_address,
            "note": self.note,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "paymentMethod": self.payment_method,
            "subtotal": self.subtotal,
            "shippingFee": self.shipping_fee,
            "totalAmount": self.total_amount,
            "cancelReason": self.cancel_reason,
            "staffNote": self.staff_note,
            "stockDeducted": bool(self.stock_deducted),
            "orderDate": self.order_date.isoformat() if self.order_date else None,
            "items": [d.to_dict() for d in details],
        }


class OrderDetail(db.Model):
    """A line of an order. Written once with the order, never updated."""

    __tablename__ = "order_details"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product = db.relationship("Product")
    product_name = db.Column(db.String(200), nullable=False)  # snapshot of product name
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)

    @property
    def line_total(self):
        return self.quantity * self.unit_price

    def to_dict(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "subtotal": self.line_total,
        }
