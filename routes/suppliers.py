from core.imports import Blueprint, jsonify, request, or_
from core.auth import role_required, current_account_id, STAFF, ADMIN
from models.inventoryModels import Batch, Supplier
from services import supplier_service

suppliers_bp = Blueprint("suppliers", __name__)


@suppliers_bp.route("/api/suppliers", methods=["GET"])
@role_required(STAFF, ADMIN)
def list_suppliers():
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 10, type=int), 1), 100)
    query = Supplier.query
    if request.args.get("status"):
        query = query.filter(Supplier.status == request.args["status"])
    search = request.args.get("search")
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Supplier.name.ilike(like), Supplier.code.ilike(like),
                                 Supplier.email.ilike(like)))
    total = query.count()
    suppliers = query.order_by(Supplier.name.asc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify({
        "suppliers": [s.to_dict() for s in suppliers],
        "total": total,
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit,
    }), 200


@suppliers_bp.route("/api/suppliers/active", methods=["GET"])
@role_required(STAFF, ADMIN)
def active_suppliers():
    suppliers = Supplier.query.filter_by(status="active").order_by(Supplier.name.asc()).all()
    return jsonify({"suppliers": [s.to_dict() for s in suppliers]}), 200


@suppliers_bp.route("/api/suppliers/<int:supplier_id>", methods=["GET"])
@role_required(STAFF, ADMIN)
def get_supplier(supplier_id):
    return jsonify(supplier_service.get_supplier(supplier_id).to_dict()), 200


@suppliers_bp.route("/api/suppliers/<int:supplier_id>/batches", methods=["GET"])
@role_required(STAFF, ADMIN)
def supplier_batches(supplier_id):
    supplier = supplier_service.get_supplier(supplier_id)
    batches = supplier.batches.order_by(Batch.created_at.asc(), Batch.id.asc()).all()
    return jsonify({"supplier": supplier.to_dict(), "batches": [b.to_dict() for b in batches]}), 200


@suppliers_bp.route("/api/suppliers", methods=["POST"])
@role_required(STAFF, ADMIN)
def create_supplier():
    """
    Register a supplier
    ---
    tags:
      - Suppliers
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required: [name, contactPerson, email, phone, address, city, country]
          properties:
            code:
              type: string
              description: generated as S{yymm}{nnn} when omitted
            name:
              type: string
            contactPerson:
              type: string
            email:
              type: string
            phone:
              type: string
            address:
              type: string
            city:
              type: string
            country:
              type: string
            rating:
              type: integer
              minimum: 1
              maximum: 5
    responses:
      201:
        description: Supplier created
      409:
        description: Supplier code already exists
    """
    supplier = supplier_service.create_supplier(request.get_json(silent=True), current_account_id())
    return jsonify({"message": "Supplier created", "supplier": supplier.to_dict()}), 201


@suppliers_bp.route("/api/suppliers/<int:supplier_id>", methods=["PUT"])
@role_required(STAFF, ADMIN)
def update_supplier(supplier_id):
    supplier = supplier_service.update_supplier(supplier_id, request.get_json(silent=True))
    return jsonify({"message": "Supplier updated", "supplier": supplier.to_dict()}), 200


@suppliers_bp.route("/api/suppliers/<int:supplier_id>/rating", methods=["PUT"])
@role_required(STAFF, ADMIN)
def rate_supplier(supplier_id):
    data = request.get_json(silent=True) or {}
    supplier = supplier_service.rate_supplier(supplier_id, data.get("rating"))
    return jsonify({"message": "Rating updated", "supplier": supplier.to_dict()}), 200


@suppliers_bp.route("/api/suppliers/<int:supplier_id>", methods=["DELETE"])
@role_required(ADMIN)
def delete_supplier(supplier_id):
    deleted = supplier_service.delete_supplier(supplier_id)
    message = "Supplier deleted" if deleted else "Supplier has batch history and was deactivated"
    return jsonify({"message": message, "deleted": deleted}), 200
