import logging

from core.imports import Blueprint, jsonify, request, current_app
from core.auth import role_required, current_account_id, CUSTOMER
from services import payment_service

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__)


@payments_bp.route("/api/payments/create", methods=["POST"])
@role_required(CUSTOMER)
def create_payment():
    """
    Open a PayOS checkout session for an order
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required: [orderId]
          properties:
            orderId:
              type: integer
              example: 1
    responses:
      201:
        description: Checkout link created
        schema:
          type: object
          properties:
            paymentUrl:
              type: string
            paymentId:
              type: integer
      400:
        description: Order not payable online, already paid, or a pending payment is still valid
      403:
        description: Not the order owner
      500:
        description: Payment provider error
    """
    data = request.get_json(silent=True) or {}
    payment = payment_service.create_payment(data.get("orderId"), current_account_id())
    return jsonify({
        "message": "Payment link created",
        "paymentUrl": payment.payment_url,
        "paymentId": payment.id,
        "orderCode": payment.provider_order_code,
    }), 201


@payments_bp.route("/api/payments/webhook", methods=["POST"])
def payment_webhook():
    """
    PayOS webhook receiver
    ---
    tags:
      - Payments
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: false
        schema:
          type: object
          properties:
            code:
              type: string
              example: "00"
            data:
              type: object
              properties:
                orderCode:
                  type: integer
                  example: 123456789
            signature:
              type: string
    responses:
      200:
        description: Processed, unknown orderCode, or empty test call
      400:
        description: Malformed payload
      500:
        description: Processing failed and was rolled back
    """
    payload = request.get_json(silent=True)
    body, status = payment_service.handle_webhook(
        payload, signature_required=current_app.config.get("PAYOS_VERIFY_WEBHOOK", False)
    )
    logger.info("webhook answered %s", status)
    return jsonify(body), status


@payments_bp.route("/api/payments/reset/<int:order_id>", methods=["POST"])
@role_required(CUSTOMER)
def reset_payments(order_id):
    modified = payment_service.reset_payments(order_id, current_account_id())
    return jsonify({"message": "Pending payments reset", "modifiedCount": modified}), 200


@payments_bp.route("/api/payments/<int:payment_id>", methods=["GET"])
@role_required(CUSTOMER)
def get_payment(payment_id):
    payment = payment_service.get_payment(payment_id, current_account_id())
    return jsonify(payment.to_dict()), 200
