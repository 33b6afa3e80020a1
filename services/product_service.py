from core.extensions import db
from core.imports import or_
from core.auth import ensure_product_editor
from core.errors import NotFoundError, ValidationError
from models.orderModels import Order, OrderDetail
from models.productModels import Product
from models.cartModels import CartItem
from models.inventoryModels import StockMovement
from services import cart_service, pricing
from services.batch_service import parse_date

EDITABLE_FIELDS = {
    "name": "name",
    "description": "description",
    "category": "category",
    "brand": "brand",
    "size": "size",
    "benefits": "benefits",
    "skinType": "skin_type",
    "imageUrl": "image_url",
}


def get_product(product_id):
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def _apply_fields(product, data):
    for key, attr in EDITABLE_FIELDS.items():
        if key in data:
            setattr(product, attr, data[key])
    if "price" in data:
        try:
            price = float(data["price"])
        except (TypeError, ValueError):
            raise ValidationError("price must be a number")
        if price < 0:
            raise ValidationError("price cannot be negative")
        product.price = price
    if "expiryDate" in data:
        product.expiry_date = parse_date(data["expiryDate"], "expiryDate") if data["expiryDate"] else None
    if "aiFeatures" in data:
        features = data["aiFeatures"] or {}
        if not isinstance(features, dict):
            raise ValidationError("aiFeatures must be an object")
        product.ai_features = {str(k): str(v) for k, v in features.items()}


def create_product(data, actor_id):
    data = data or {}
    if not data.get("name") or data.get("price") is None:
        raise ValidationError("name and price are required")
    stock = data.get("stockQuantity", 0)
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        raise ValidationError("stockQuantity must be a non-negative integer")

    product = Product(created_by=actor_id, stock_quantity=stock, description="")
    _apply_fields(product, data)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id, data, actor_id, role):
    product = get_product(product_id)
    ensure_product_editor(product, actor_id, role)
    if "stockQuantity" in (data or {}):
        raise ValidationError("Stock changes go through batches or stock movements")
    _apply_fields(product, data or {})
    if product.is_on_sale and product.sale_price is not None and product.sale_price >= product.price:
        product.sale_price = None
        product.is_on_sale = False
    db.session.commit()
    return product


def delete_product(product_id, actor_id, role):
    product = get_product(product_id)
    ensure_product_editor(product, actor_id, role)
    in_use = (
        db.session.query(OrderDetail.id)
        .join(Order, OrderDetail.order_id == Order.id)
        .filter(OrderDetail.product_id == product.id,
                Order.status.notin_(("cancelled", "completed")))
        .first()
    )
    if in_use:
        raise ValidationError("Product is referenced by active orders")
    if product.batches.count() or StockMovement.query.filter_by(product_id=product.id).first():
        raise ValidationError("Product has inventory history and cannot be deleted")
    try:
        OrderDetail.query.filter_by(product_id=product.id).update(
            {OrderDetail.product_id: None}, synchronize_session=False
        )
        for item in CartItem.query.filter_by(product_id=product.id).all():
            cart = item.cart
            cart.cart_items.remove(item)
            cart_service.recompute_total(cart)
        db.session.delete(product)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def list_products(search=None, category=None, brand=None, page=1, limit=12):
    query = Product.query
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
    if category:
        query = query.filter(Product.category == category)
    if brand:
        query = query.filter(Product.brand == brand)
    total = query.count()
    products = query.order_by(Product.created_at.desc(), Product.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return products, total


def set_sale(product_id, sale_price, actor_id, role):
    product = get_product(product_id)
    ensure_product_editor(product, actor_id, role)
    try:
        pricing.set_manual_sale(product, sale_price)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return product
