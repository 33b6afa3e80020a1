from core.imports import Blueprint, jsonify, request
from core.auth import role_required, current_account_id, STAFF, ADMIN
from core.errors import ValidationError
from models.inventoryModels import StockMovement
from services import batch_service, report_service

batches_bp = Blueprint("batches", __name__)


@batches_bp.route("/api/batches", methods=["GET"])
@role_required(STAFF, ADMIN)
def list_batches():
    """
    List batches
    ---
    tags:
      - Batches
    security:
      - Bearer: []
    parameters:
      - name: status
        in: query
        type: string
        enum: [pending, received, active, expired, recalled, disposed]
      - name: productId
        in: query
        type: integer
      - name: supplierId
        in: query
        type: integer
      - name: expiryStatus
        in: query
        type: string
        enum: [expired, expiring_soon, expiring_warning, good]
      - name: search
        in: query
        type: string
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Paginated batches
    """
    expiry_status = request.args.get("expiryStatus")
    if expiry_status and expiry_status not in batch_service.EXPIRY_FILTERS:
        raise ValidationError(f"expiryStatus must be one of {', '.join(batch_service.EXPIRY_FILTERS)}")
    result = batch_service.list_batches(
        status=request.args.get("status"),
        product_id=request.args.get("productId", type=int),
        supplier_id=request.args.get("supplierId", type=int),
        expiry_status=expiry_status,
        search=request.args.get("search"),
        page=max(request.args.get("page", 1, type=int), 1),
        limit=min(max(request.args.get("limit", 10, type=int), 1), 100),
    )
    return jsonify(result), 200


@batches_bp.route("/api/batches/expiring-soon", methods=["GET"])
@role_required(STAFF, ADMIN)
def expiring_soon():
    days = request.args.get("days", 30, type=int)
    batches = report_service.expiring_soon(days)
    return jsonify({"batches": batches, "days": days, "count": len(batches)}), 200


@batches_bp.route("/api/batches/expired", methods=["GET"])
@role_required(STAFF, ADMIN)
def expired_batches():
    batches = report_service.expired()
    return jsonify({"batches": batches, "count": len(batches)}), 200


@batches_bp.route("/api/inventory/low-stock", methods=["GET"])
@role_required(STAFF, ADMIN)
def low_stock():
    threshold = request.args.get("threshold", type=int)
    products = report_service.low_stock(threshold)
    return jsonify({"products": products, "count": len(products)}), 200


@batches_bp.route("/api/batches/<int:batch_id>", methods=["GET"])
@role_required(STAFF, ADMIN)
def get_batch(batch_id):
    batch = batch_service.get_batch(batch_id)
    movements = (
        StockMovement.query.filter_by(batch_id=batch.id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .all()
    )
    return jsonify({"batch": batch.to_dict(), "movements": [m.to_dict() for m in movements]}), 200


@batches_bp.route("/api/batches", methods=["POST"])
@role_required(STAFF, ADMIN)
def create_batch():
    """
    Receive a new batch (starts as pending)
    ---
    tags:
      - Batches
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required: [productId, supplierId, quantity, unitCost, manufacturingDate, expiryDate, location]
          properties:
            productId:
              type: integer
            supplierId:
              type: integer
            quantity:
              type: integer
              example: 100
            unitCost:
              type: number
              example: 25000
            manufacturingDate:
              type: string
              example: "2025-01-01"
            expiryDate:
              type: string
              example: "2027-01-01"
            location:
              type: string
              example: "Warehouse A"
            notes:
              type: string
    responses:
      201:
        description: Batch created
      400:
        description: Missing fields or invalid dates
      404:
        description: Product or supplier not found
    """
    batch = batch_service.create_batch(request.get_json(silent=True), current_account_id())
    return jsonify({"message": "Batch created", "batch": batch.to_dict()}), 201


@batches_bp.route("/api/batches/<int:batch_id>", methods=["PUT"])
@role_required(STAFF, ADMIN)
def update_batch(batch_id):
    batch = batch_service.update_batch(batch_id, request.get_json(silent=True), current_account_id())
    return jsonify({"message": "Batch updated", "batch": batch.to_dict()}), 200


@batches_bp.route("/api/batches/<int:batch_id>", methods=["DELETE"])
@role_required(STAFF, ADMIN)
def delete_batch(batch_id):
    batch_service.delete_batch(batch_id)
    return jsonify({"message": "Batch deleted"}), 200


@batches_bp.route("/api/batches/<int:batch_id>/approve", methods=["POST"])
@role_required(STAFF, ADMIN)
def approve_batch(batch_id):
    batch = batch_service.approve_batch(batch_id, current_account_id())
    return jsonify({"message": "Batch approved", "batch": batch.to_dict()}), 200


@batches_bp.route("/api/batches/<int:batch_id>/dispose", methods=["POST"])
@role_required(STAFF, ADMIN)
def dispose_batch(batch_id):
    data = request.get_json(silent=True) or {}
    batch = batch_service.dispose_batch(
        batch_id, data.get("quantity"), data.get("reason"), current_account_id(), notes=data.get("notes")
    )
    return jsonify({"message": "Batch disposed", "batch": batch.to_dict()}), 200
