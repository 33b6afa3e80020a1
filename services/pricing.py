"""Expiry-driven automatic discount, applied when a product is read.

The stored ``sale_price``/``is_on_sale`` columns only ever hold a manual sale.
The automatic discount is derived here and never written back.
"""

from decimal import Decimal, ROUND_HALF_UP

from core.imports import current_app, date
from core.errors import ValidationError

DEFAULT_SALE_DAYS = 30
DEFAULT_SALE_RATE = 0.9


def _settings():
    try:
        config = current_app.config
    except RuntimeError:
        return DEFAULT_SALE_DAYS, DEFAULT_SALE_RATE
    return config.get("AUTO_SALE_DAYS", DEFAULT_SALE_DAYS), config.get("AUTO_SALE_RATE", DEFAULT_SALE_RATE)


def round_half_up(value):
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def days_until_expiry(product, today=None):
    if product.expiry_date is None:
        return None
    today = today or date.today()
    return (product.expiry_date - today).days


def auto_sale_price(product):
    _, rate = _settings()
    return round_half_up(product.price * rate)


def effective_sale(product, today=None):
    """Return ``(sale_price, is_on_sale)`` as a customer should see them."""
    window, _ = _settings()
    stored_price = product.sale_price if product.is_on_sale else None
    days = days_until_expiry(product, today)
    if days is None:
        return stored_price, stored_price is not None

    auto_price = auto_sale_price(product)
    if days <= window:
        if stored_price is not None and stored_price < auto_price:
            return stored_price, True
        return auto_price, True

    if stored_price is not None and stored_price == auto_price:
        return None, False
    return stored_price, stored_price is not None


def effective_price(product, today=None):
    sale_price, on_sale = effective_sale(product, today)
    if on_sale and sale_price is not None and sale_price < product.price:
        return sale_price
    return product.price


def product_view(product, today=None):
    data = product.to_dict()
    sale_price, on_sale = effective_sale(product, today)
    data["salePrice"] = sale_price
    data["isOnSale"] = on_sale
    data["daysUntilExpiry"] = days_until_expiry(product, today)
    return data


def set_manual_sale(product, sale_price, today=None):
    """Store a manual sale price. ``None`` clears it."""
    if sale_price is None:
        product.sale_price = None
        product.is_on_sale = False
        return product

    try:
        sale_price = float(sale_price)
    except (TypeError, ValueError):
        raise ValidationError("salePrice must be a number")

    window, _ = _settings()
    days = days_until_expiry(product, today)
    if days is None or days > window:
        raise ValidationError(f"Sale price can only be set within {window} days of expiry")
    if sale_price < 0 or sale_price >= product.price:
        raise ValidationError("Sale price must be lower than the regular price")

    product.sale_price = sale_price
    product.is_on_sale = True
    return product
