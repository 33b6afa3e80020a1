from core.imports import Blueprint, jsonify, request
from core.auth import role_required, current_account_id, current_role, STAFF, ADMIN
from services import pricing, product_service

products_bp = Blueprint("products", __name__)


@products_bp.route("/api/products", methods=["GET"])
def list_products():
    """
    List products with expiry-based sale prices applied
    ---
    tags:
      - Products
    parameters:
      - name: search
        in: query
        type: string
      - name: category
        in: query
        type: string
      - name: brand
        in: query
        type: string
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 12
    responses:
      200:
        description: Paginated product listing
    """
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 12, type=int), 1), 100)
    products, total = product_service.list_products(
        search=request.args.get("search"),
        category=request.args.get("category"),
        brand=request.args.get("brand"),
        page=page,
        limit=limit,
    )
    return jsonify({
        "products": [pricing.product_view(p) for p in products],
        "total": total,
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit,
    }), 200


@products_bp.route("/api/products/<int:product_id>", methods=["GET"])
def get_product(product_id):
    """
    Product details
    ---
    tags:
      - Products
    parameters:
      - name: product_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Product with salePrice/isOnSale and daysUntilExpiry
      404:
        description: Product not found
    """
    product = product_service.get_product(product_id)
    return jsonify(pricing.product_view(product)), 200


@products_bp.route("/api/products", methods=["POST"])
@role_required(STAFF, ADMIN)
def create_product():
    product = product_service.create_product(request.get_json(silent=True), current_account_id())
    return jsonify({"message": "Product created", "product": pricing.product_view(product)}), 201


@products_bp.route("/api/products/<int:product_id>", methods=["PUT"])
@role_required(STAFF, ADMIN)
def update_product(product_id):
    product = product_service.update_product(
        product_id, request.get_json(silent=True), current_account_id(), current_role()
    )
    return jsonify({"message": "Product updated", "product": pricing.product_view(product)}), 200


@products_bp.route("/api/products/<int:product_id>", methods=["DELETE"])
@role_required(STAFF, ADMIN)
def delete_product(product_id):
    product_service.delete_product(product_id, current_account_id(), current_role())
    return jsonify({"message": "Product deleted"}), 200


@products_bp.route("/api/products/<int:product_id>/sale", methods=["PATCH"])
@role_required(STAFF, ADMIN)
def set_sale(product_id):
    """
    Set or clear a manual sale price
    ---
    tags:
      - Products
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            salePrice:
              type: number
              example: 85000
              description: null clears the manual sale
    responses:
      200:
        description: Sale updated
      400:
        description: Outside the expiry window or not lower than the price
    """
    data = request.get_json(silent=True) or {}
    product = product_service.set_sale(product_id, data.get("salePrice"), current_account_id(), current_role())
    return jsonify({"message": "Sale updated", "product": pricing.product_view(product)}), 200
