import logging

from core.extensions import db
from core.imports import IntegrityError
from core.auth import ensure_cart_item_owner
from core.errors import InsufficientStockError, NotFoundError, ValidationError
from models.cartModels import Cart, CartItem
from models.productModels import Product

logger = logging.getLogger(__name__)


def parse_quantity(value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("Quantity must be a positive integer")
    return value


def recompute_total(cart):
    cart.total_amount = sum(item.quantity * item.unit_price for item in cart.cart_items)
    return cart.total_amount


def get_or_create_cart(customer_id):
    cart = Cart.query.filter_by(customer_id=customer_id).first()
    if cart:
        return cart
    cart = Cart(customer_id=customer_id, total_amount=0)
    db.session.add(cart)
    try:
        db.session.commit()
    except IntegrityError:
        # another request created it first
        db.session.rollback()
        cart = Cart.query.filter_by(customer_id=customer_id).first()
    return cart


def _check_stock(product, quantity):
    if product.stock_quantity < quantity:
        raise InsufficientStockError(product.id, product.stock_quantity, quantity)


def add_item(customer_id, product_id, quantity):
    quantity = parse_quantity(quantity)
    product = db.session.get(Product, product_id) if product_id is not None else None
    if not product:
        raise NotFoundError("Product not found")
    _check_stock(product, quantity)

    cart = get_or_create_cart(customer_id)
    for attempt in range(2):
        item = CartItem.query.filter_by(cart_id=cart.id, product_id=product.id).first()
        if item:
            item.quantity += quantity
            item.unit_price = product.price
        else:
            item = CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity,
                            unit_price=product.price)
            db.session.add(item)
        try:
            db.session.flush()
            db.session.refresh(cart)
            recompute_total(cart)
            db.session.commit()
            return item
        except IntegrityError:
            # concurrent add of the same product; merge into the row that won
            db.session.rollback()
            if attempt:
                raise
    return item


def _owned_item(customer_id, item_id):
    item = db.session.get(CartItem, item_id)
    if not item:
        raise NotFoundError("Cart item not found")
    ensure_cart_item_owner(item, customer_id)
    return item


def update_item(customer_id, item_id, quantity):
    item = _owned_item(customer_id, item_id)
    quantity = parse_quantity(quantity)
    _check_stock(item.product, quantity)

    item.quantity = quantity
    recompute_total(item.cart)
    db.session.commit()
    return item


def remove_item(customer_id, item_id):
    item = _owned_item(customer_id, item_id)
    cart = item.cart
    removed = item.to_dict()
    cart.cart_items.remove(item)
    recompute_total(cart)
    db.session.commit()
    return removed


def clear_cart(customer_id):
    """Empty the customer's cart. The caller commits."""
    cart = Cart.query.filter_by(customer_id=customer_id).first()
    if not cart:
        return None
    CartItem.query.filter_by(cart_id=cart.id).delete(synchronize_session=False)
    db.session.expire(cart, ["cart_items"])
    cart.total_amount = 0
    logger.info("cart %s cleared for customer %s", cart.id, customer_id)
    return cart
