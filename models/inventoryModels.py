from collections import namedtuple

from core.extensions import db
from core.imports import datetime, date

BATCH_STATUSES = ("pending", "received", "active", "expired", "recalled", "disposed")
SUPPLIER_STATUSES = ("active", "inactive", "suspended")
MOVEMENT_TYPES = ("in", "out", "adjustment", "transfer", "return", "disposal")
MOVEMENT_REASONS = (
    "purchase", "sale", "return", "adjustment", "transfer", "disposal",
    "expiry", "damage", "theft", "quality_control", "other",
)
MOVEMENT_STATUSES = ("pending", "approved", "rejected", "completed")
REFERENCE_KINDS = ("Order", "Batch", "Supplier")

Reference = namedtuple("Reference", ["kind", "id"])


class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    contact_person = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    address = db.Column(db.String(300), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    country = db.Column(db.String(100), nullable=False)
    tax_code = db.Column(db.String(50), nullable=True)
    website = db.Column(db.String(200), nullable=True)
    status = db.Column(db.String(20), default="active", nullable=False)
    rating = db.Column(db.Integer, default=1, nullable=False)
    total_orders = db.Column(db.Integer, default=0, nullable=False)
    total_value = db.Column(db.Float, default=0, nullable=False)
    payment_terms = db.Column(db.String(50), default="30 days")
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "contactPerson": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "taxCode": self.tax_code,
            "website": self.website,
            "status": self.status,
            "rating": self.rating,
            "totalOrders": self.total_orders,
            "totalValue": self.total_value,
            "paymentTerms": self.payment_terms,
            "notes": self.notes,
            "createdBy": self.created_by,
        }


class Batch(db.Model):
    __tablename__ = "batches"
    __table_args__ = (
        db.CheckConstraint("remaining_quantity >= 0", name="ck_batch_remaining_non_negative"),
        db.CheckConstraint("remaining_quantity <= quantity", name="ck_batch_remaining_le_quantity"),
        db.Index("ix_batch_fifo", "product_id", "status", "expiry_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product = db.relationship("Product", backref=db.backref("batches", lazy="dynamic"))
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier = db.relationship("Supplier", backref=db.backref("batches", lazy="dynamic"))

    quantity = db.Column(db.Integer, nullable=False)
    remaining_quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Float, nullable=False)
    total_cost = db.Column(db.Float, nullable=False)

    manufacturing_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=False)
    received_date = db.Column(db.DateTime, default=datetime.utcnow)

    status = db.Column(db.String(20), default="pending", nullable=False)
    location = db.Column(db.String(100), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    qc_passed = db.Column(db.Boolean, default=False, nullable=False)
    qc_checked_by = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)
    qc_checked_at = db.Column(db.DateTime, nullable=True)
    qc_notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def days_until_expiry(self, today=None):
        today = today or date.today()
        return (self.expiry_date - today).days

    def expiry_status(self, today=None):
        days = self.days_until_expiry(today)
        if days < 0:
            return "expired"
        if days <= 30:
            return "expiring_soon"
        if days <= 90:
            return "expiring_warning"
        return "good"

    def to_dict(self):
        return {
            "id": self.id,
            "batchCode": self.batch_code,
            "productId": self.product_id,
            "productName": self.product.name if self.product else None,
            "supplierId": self.supplier_id,
            "supplierName": self.supplier.name if self.supplier else None,
            "quantity": self.quantity,
            "remainingQuantity": self.remaining_quantity,
            "unitCost": self.unit_cost,
            "totalCost": self.total_cost,
            "manufacturingDate": self.manufacturing_date.isoformat(),
            "expiryDate": self.expiry_date.isoformat(),
            "receivedDate": self.received_date.isoformat() if self.received_date else None,
            "status": self.status,
            "location": self.location,
            "notes": self.notes,
            "qualityCheck": {
                "passed": bool(self.qc_passed),
                "checkedBy": self.qc_checked_by,
                "checkedAt": self.qc_checked_at.isoformat() if self.qc_checked_at else None,
                "notes": self.qc_notes,
            },
            "createdBy": self.created_by,
            "approvedBy": self.approved_by,
            "approvedAt": self.approved_at.isoformat() if self.approved_at else None,
            "daysUntilExpiry": self.days_until_expiry(),
            "expiryStatus": self.expiry_status(),
        }


class StockMovement(db.Model):
    """Inventory ledger row. Rows are appended, never edited or removed."""

    __tablename__ = "stock_movements"

    id = db.Column(db.Integer, primary_key=True)
    movement_type = db.Column(db.String(20), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product = db.relationship("Product")
    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id", ondelete="SET NULL"), nullable=True, index=True)
    batch = db.relationship("Batch")

    # signed: positive adds to stock, negative removes
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Float, nullable=False, default=0)
    total_value = db.Column(db.Float, nullable=False, default=0)
    reason = db.Column(db.String(30), nullable=False)

    reference = db.Column(db.String(100), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    reference_model = db.Column(db.String(20), nullable=True)

    location = db.Column(db.String(100), nullable=False, default="main")
    notes = db.Column(db.Text, nullable=True)
    performed_by = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)
    approved_by = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        db.Index("ix_movement_reference", "reference_model", "reference_id"),
    )

    @property
    def reference_target(self):
        if self.reference_model is None or self.reference_id is None:
            return None
        return Reference(self.reference_model, self.reference_id)

    def to_dict(self):
        target = self.reference_target
        return {
            "id": self.id,
            "movementType": self.movement_type,
            "productId": self.product_id,
            "batchId": self.batch_id,
            "quantity": self.quantity,
            "unitCost": self.unit_cost,
            "totalValue": self.total_value,
            "reason": self.reason,
            "reference": self.reference,
            "referenceTarget": {"kind": target.kind, "id": target.id} if target else None,
            "location": self.location,
            "notes": self.notes,
            "performedBy": self.performed_by,
            "approvedBy": self.approved_by,
            "approvedAt": self.approved_at.isoformat() if self.approved_at else None,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
