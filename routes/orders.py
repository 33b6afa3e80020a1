from core.imports import Blueprint, jsonify, request
from core.auth import role_required, current_account_id, current_role, CUSTOMER, STAFF, ADMIN
from services import order_service

orders_bp = Blueprint("orders", __name__)


@orders_bp.route("/api/orders", methods=["POST"])
@role_required(CUSTOMER)
def create_order():
    """
    Place an order and clear the cart
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required: [items, recipientName, phone, shippingAddress]
          properties:
            items:
              type: array
              items:
                type: object
                properties:
                  productId:
                    type: integer
                    example: 1
                  quantity:
                    type: integer
                    example: 2
            recipientName:
              type: string
              example: "Jane Doe"
            phone:
              type: string
              example: "0900000000"
            email:
              type: string
            shippingAddress:
              type: string
              example: "12 Main St"
            paymentMethod:
              type: string
              enum: [cod, online, cash, bank]
            note:
              type: string
    responses:
      201:
        description: Order created with status pending
      400:
        description: Validation failed or insufficient stock
    """
    order = order_service.create_order(request.get_json(silent=True), customer_id=current_account_id())
    return jsonify({"message": "Order created", "order": order.to_dict()}), 201


@orders_bp.route("/api/guest-orders", methods=["POST"])
def create_guest_order():
    order = order_service.create_order(request.get_json(silent=True), customer_id=None)
    return jsonify({"message": "Order created", "order": order.to_dict()}), 201


@orders_bp.route("/api/orders/my-orders", methods=["GET"])
@role_required(CUSTOMER, STAFF)
def my_orders():
    orders = order_service.orders_for_viewer(current_account_id(), current_role())
    return jsonify({"orders": orders}), 200


@orders_bp.route("/api/orders/manage", methods=["GET"])
@role_required(STAFF, ADMIN)
def manage_orders():
    """
    Paginated order listing for staff and administrators
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: status
        in: query
        type: string
      - name: paymentStatus
        in: query
        type: string
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 10
    responses:
      200:
        description: Orders, total, currentPage, totalPages
    """
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 10, type=int), 1), 100)
    result = order_service.list_orders(
        status=request.args.get("status"),
        payment_status=request.args.get("paymentStatus"),
        page=page,
        limit=limit,
    )
    return jsonify(result), 200


@orders_bp.route("/api/orders/stats", methods=["GET"])
@role_required(STAFF, ADMIN)
def order_stats():
    return jsonify(order_service.order_stats()), 200


@orders_bp.route("/api/orders/<int:order_id>", methods=["GET"])
@role_required(CUSTOMER, STAFF, ADMIN)
def get_order(order_id):
    order = order_service.get_order(order_id)
    return jsonify(order_service.view_order(order, current_account_id(), current_role())), 200


@orders_bp.route("/api/orders/<int:order_id>/cancel", methods=["POST"])
@role_required(CUSTOMER)
def cancel_order(order_id):
    data = request.get_json(silent=True) or {}
    order = order_service.cancel_by_customer(order_id, current_account_id(), data.get("reason"))
    return jsonify({"message": "Order cancelled", "order": order.to_dict()}), 200


@orders_bp.route("/api/orders/<int:order_id>/status", methods=["PATCH"])
@role_required(STAFF)
def update_own_products_status(order_id):
    data = request.get_json(silent=True) or {}
    order = order_service.transition(
        order_id,
        data.get("status"),
        current_account_id(),
        current_role(),
        note=data.get("note"),
        cancel_reason=data.get("cancelReason"),
        own_products_only=True,
    )
    return jsonify({"message": "Order status updated", "order": order.to_dict()}), 200


@orders_bp.route("/api/orders/<int:order_id>/update-status", methods=["PATCH"])
@role_required(STAFF, ADMIN)
def update_status(order_id):
    """
    Move an order through its lifecycle
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: integer
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          required: [status]
          properties:
            status:
              type: string
              enum: [pending, processing, shipping, delivered, completed, cancelled]
            note:
              type: string
            cancelReason:
              type: string
              description: required when status is cancelled
    responses:
      200:
        description: Order updated; stock deducted or restored as needed
      400:
        description: Invalid status, missing cancelReason or insufficient stock
      404:
        description: Order not found
    """
    data = request.get_json(silent=True) or {}
    order = order_service.transition(
        order_id,
        data.get("status"),
        current_account_id(),
        current_role(),
        note=data.get("note"),
        cancel_reason=data.get("cancelReason"),
    )
    return jsonify({"message": "Order status updated", "order": order.to_dict()}), 200


@orders_bp.route("/api/orders/<int:order_id>/payment-status", methods=["PATCH"])
@role_required(STAFF, ADMIN)
def update_payment_status(order_id):
    data = request.get_json(silent=True) or {}
    order = order_service.set_payment_status(
        order_id, data.get("paymentStatus"), current_account_id(), note=data.get("note")
    )
    return jsonify({"message": "Payment status updated", "order": order.to_dict()}), 200
