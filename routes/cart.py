from core.imports import Blueprint, jsonify, request
from core.auth import role_required, current_account_id, CUSTOMER
from services import cart_service

cart_bp = Blueprint("cart", __name__)


@cart_bp.route("/api/cart", methods=["GET"])
@role_required(CUSTOMER)
def get_cart():
    """
    Get the current customer's cart
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    responses:
      200:
        description: Cart with item subtotals
        schema:
          type: object
          properties:
            items:
              type: array
              items:
                type: object
                properties:
                  id:
                    type: integer
                  productId:
                    type: integer
                  quantity:
                    type: integer
                    example: 2
                  unitPrice:
                    type: number
                    example: 100
                  subtotal:
                    type: number
                    example: 200
            totalAmount:
              type: number
      403:
        description: Only customers have carts
    """
    cart = cart_service.get_or_create_cart(current_account_id())
    return jsonify(cart.to_dict()), 200


@cart_bp.route("/api/cart/items", methods=["POST"])
@role_required(CUSTOMER)
def add_item():
    """
    Add a product to the cart, merging with an existing line
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required: [productId, quantity]
          properties:
            productId:
              type: integer
              example: 1
            quantity:
              type: integer
              example: 2
    responses:
      201:
        description: Item added
      400:
        description: Invalid quantity or insufficient stock
      404:
        description: Product not found
    """
    data = request.get_json(silent=True) or {}
    item = cart_service.add_item(current_account_id(), data.get("productId"), data.get("quantity"))
    return jsonify({"message": "Item added to cart", "item": item.to_dict()}), 201


@cart_bp.route("/api/cart/items/<int:item_id>", methods=["PUT"])
@role_required(CUSTOMER)
def update_item(item_id):
    data = request.get_json(silent=True) or {}
    item = cart_service.update_item(current_account_id(), item_id, data.get("quantity"))
    return jsonify({"message": "Cart item updated", "item": item.to_dict()}), 200


@cart_bp.route("/api/cart/items/<int:item_id>", methods=["DELETE"])
@role_required(CUSTOMER)
def remove_item(item_id):
    removed = cart_service.remove_item(current_account_id(), item_id)
    return jsonify({"message": "Item removed from cart", "item": removed}), 200
