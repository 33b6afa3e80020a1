from core.imports import Blueprint, jsonify, request
from core.auth import role_required, current_account_id, ADMIN, CUSTOMER
from services import account_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/api/auth/register", methods=["POST"])
def register():
    """
    Register a customer account
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required: [username, email, password]
          properties:
            username:
              type: string
              example: "jane"
            email:
              type: string
              example: "jane@example.com"
            password:
              type: string
              example: "secret123"
            name:
              type: string
            phone:
              type: string
    responses:
      201:
        description: Account created
      400:
        description: Missing fields or duplicate username/email
    """
    account = account_service.register_customer(request.get_json(silent=True))
    return jsonify({"message": "Registration successful", "account": account.to_dict()}), 201


@auth_bp.route("/api/auth/login", methods=["POST"])
def login():
    """
    Log in and receive an access token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            username:
              type: string
              example: "jane"
            password:
              type: string
              example: "secret123"
    responses:
      200:
        description: Token issued
        schema:
          type: object
          properties:
            access_token:
              type: string
            role:
              type: string
              example: "customer"
      401:
        description: Invalid credentials
    """
    account, token = account_service.login(request.get_json(silent=True))
    return jsonify({
        "message": "Login successful",
        "access_token": token,
        "role": account.role,
        "account": account.to_dict(),
    }), 200


@auth_bp.route("/api/admin/staff", methods=["POST"])
@role_required(ADMIN)
def create_staff():
    account = account_service.create_staff(request.get_json(silent=True))
    return jsonify({"message": "Staff account created", "account": account.to_dict()}), 201


def _account_listing(role=None):
    return account_service.list_accounts(
        role=role or request.args.get("role"),
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=max(request.args.get("page", 1, type=int), 1),
        limit=min(max(request.args.get("limit", 20, type=int), 1), 100),
    )


@auth_bp.route("/api/admin/accounts", methods=["GET"])
@role_required(ADMIN)
def list_accounts():
    return jsonify(_account_listing()), 200


@auth_bp.route("/api/admin/customers", methods=["GET"])
@role_required(ADMIN)
def list_customers():
    return jsonify(_account_listing(role=CUSTOMER)), 200


@auth_bp.route("/api/admin/accounts/<int:account_id>/status", methods=["PATCH"])
@role_required(ADMIN)
def set_account_status(account_id):
    """
    Lock or unlock an account
    ---
    tags:
      - Admin
    parameters:
      - name: account_id
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
              enum: [active, locked]
    responses:
      200:
        description: Status updated
      400:
        description: Unknown status or own account
      404:
        description: Account not found
    """
    data = request.get_json(silent=True) or {}
    account = account_service.set_account_status(account_id, data.get("status"), current_account_id())
    return jsonify({"message": "Account status updated", "account": account.to_dict()}), 200
