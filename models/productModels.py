from core.extensions import db
from core.imports import datetime


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False, default="")
    category = db.Column(db.String(100), nullable=True, index=True)
    brand = db.Column(db.String(100), nullable=True, index=True)
    size = db.Column(db.String(50), nullable=True)
    benefits = db.Column(db.JSON, default=list)
    skin_type = db.Column(db.JSON, default=list)
    image_url = db.Column(db.String(500), nullable=True)

    price = db.Column(db.Float, nullable=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    expiry_date = db.Column(db.Date, nullable=True)

    # only manual sales are stored; the expiry discount is computed on read
    sale_price = db.Column(db.Float, nullable=True)
    is_on_sale = db.Column(db.Boolean, default=False, nullable=False)

    ai_features = db.Column(db.JSON, default=dict)

    created_by = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    creator = db.relationship("Account")

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "brand": self.brand,
            "size": self.size,
            "benefits": self.benefits or [],
            "skinType": self.skin_type or [],
            "imageUrl": self.image_url,
            "price": self.price,
            "stockQuantity": self.stock_quantity,
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "salePrice": self.sale_price,
            "isOnSale": bool(self.is_on_sale),
            "aiFeatures": dict(self.ai_features or {}),
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
