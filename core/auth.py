from functools import wraps

from core.imports import get_jwt, get_jwt_identity, jsonify, verify_jwt_in_request
from core.errors import ForbiddenError

CUSTOMER = "customer"
STAFF = "staff"
ADMIN = "admin"
ROLES = (CUSTOMER, STAFF, ADMIN)


def role_required(*roles):
    """Require a valid token whose ``role`` claim is one of ``roles``."""

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if get_jwt().get("role") not in roles:
                return jsonify({"message": "Forbidden"}), 403
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def current_account_id():
    return int(get_jwt_identity())


def current_role():
    return get_jwt().get("role")


def staff_owns_product(product, account_id=None):
    if product is None:
        return False
    if account_id is None:
        account_id = current_account_id()
    return product.created_by == account_id


def ensure_order_owner(order, account_id=None):
    if account_id is None:
        account_id = current_account_id()
    if order.customer_id is None or order.customer_id != account_id:
        raise ForbiddenError("Not authorized to access this order")


def ensure_cart_item_owner(item, account_id=None):
    if account_id is None:
        account_id = current_account_id()
    if item.cart.customer_id != account_id:
        raise ForbiddenError("Not authorized")


def ensure_product_editor(product, account_id, role):
    if role == ADMIN:
        return
    if not staff_owns_product(product, account_id):
        raise ForbiddenError("You can only manage products you created")


def filter_details_for_viewer(details, account_id, role):
    """Staff only see the order lines for products they created."""
    if role != STAFF:
        return list(details)
    return [d for d in details if staff_owns_product(d.product, account_id)]
