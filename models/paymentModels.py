from core.extensions import db
from core.imports import datetime


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    subtotal = db.Column(db.Float, nullable=False, default=0)
    shipping_fee = db.Column(db.Float, nullable=False, default=0)

    provider_order_code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    status = db.Column(db.String(20), default="pending", nullable=False, index=True)  # pending, completed, failed, cancelled
    payment_url = db.Column(db.String(500), nullable=False)
    payment_method = db.Column(db.String(20), default="online", nullable=False)
    description = db.Column(db.String(255), nullable=True)

    payment_timeout = db.Column(db.DateTime, nullable=True)
    is_expired = db.Column(db.Boolean, default=False, nullable=False)

    transaction_id = db.Column(db.String(100), nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_terminal(self):
        return self.status != "pending"

    def to_dict(self):
        return {
            "id": self.id,
            "orderId": self.order_id,
            "userId": self.user_id,
            "amount": self.amount,
            "subtotal": self.subtotal,
            "shippingFee": self.shipping_fee,
            "orderCode": self.provider_order_code,
            "status": self.status,
            "paymentUrl": self.payment_url,
            "paymentMethod": self.payment_method,
            "paymentTimeout": self.payment_timeout.isoformat() if self.payment_timeout else None,
            "isExpired": bool(self.is_expired),
            "transactionId": self.transaction_id,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
            "cancelledAt": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
