from core.imports import Blueprint, jsonify, request, datetime
from core.auth import role_required, current_account_id, STAFF, ADMIN
from core.extensions import db
from core.errors import ValidationError
from services import report_service, stock_service

stock_movements_bp = Blueprint("stock_movements", __name__)


def _parse_datetime(value, field):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date")


@stock_movements_bp.route("/api/stock-movements", methods=["GET"])
@role_required(STAFF, ADMIN)
def list_movements():
    result = report_service.list_movements(
        movement_type=request.args.get("movementType"),
        product_id=request.args.get("productId", type=int),
        batch_id=request.args.get("batchId", type=int),
        reason=request.args.get("reason"),
        status=request.args.get("status"),
        reference_model=request.args.get("referenceModel"),
        reference_id=request.args.get("referenceId", type=int),
        page=max(request.args.get("page", 1, type=int), 1),
        limit=min(max(request.args.get("limit", 20, type=int), 1), 100),
    )
    return jsonify(result), 200


@stock_movements_bp.route("/api/stock-movements/reports/inventory", methods=["GET"])
@role_required(STAFF, ADMIN)
def inventory_report():
    return jsonify(report_service.inventory_report(request.args.get("threshold", type=int))), 200


@stock_movements_bp.route("/api/stock-movements/reports/summary", methods=["GET"])
@role_required(STAFF, ADMIN)
def movement_summary():
    start = _parse_datetime(request.args.get("startDate"), "startDate")
    end = _parse_datetime(request.args.get("endDate"), "endDate")
    return jsonify(report_service.movement_summary(start, end)), 200


@stock_movements_bp.route("/api/stock-movements/<int:movement_id>", methods=["GET"])
@role_required(STAFF, ADMIN)
def get_movement(movement_id):
    return jsonify(report_service.get_movement(movement_id).to_dict()), 200


@stock_movements_bp.route("/api/stock-movements", methods=["POST"])
@role_required(STAFF, ADMIN)
def create_movement():
    """
    Record a manual adjustment, return or transfer
    ---
    tags:
      - Stock Movements
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required: [movementType, productId, quantity, reason]
          properties:
            movementType:
              type: string
              enum: [adjustment, return, transfer]
            productId:
              type: integer
            batchId:
              type: integer
            quantity:
              type: integer
              description: signed for adjustments
              example: -2
            reason:
              type: string
              example: damage
            location:
              type: string
            notes:
              type: string
    responses:
      201:
        description: Movement recorded and applied
      400:
        description: Invalid movement or stock would go negative
    """
    data = request.get_json(silent=True) or {}
    if not data.get("reason"):
        raise ValidationError("reason is required")
    try:
        movement = stock_service.apply_manual_movement(
            data.get("productId"),
            data.get("movementType"),
            data.get("quantity"),
            data["reason"],
            current_account_id(),
            batch_id=data.get("batchId"),
            unit_cost=data.get("unitCost"),
            location=data.get("location"),
            notes=data.get("notes"),
            reference=data.get("reference"),
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return jsonify({"message": "Stock movement recorded", "movement": movement.to_dict()}), 201


@stock_movements_bp.route("/api/stock-movements/<int:movement_id>/approve", methods=["POST"])
@role_required(ADMIN)
def approve_movement(movement_id):
    movement = report_service.approve_movement(movement_id, current_account_id())
    return jsonify({"message": "Stock movement approved", "movement": movement.to_dict()}), 200
