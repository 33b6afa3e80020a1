"""Thin client for the PayOS hosted-checkout API."""

import hashlib
import hmac
import logging

import requests

from core.errors import UpstreamError

logger = logging.getLogger(__name__)

SUCCESS_CODE = "00"


def _signature_payload(fields):
    parts = []
    for key in sorted(fields):
        value = fields[key]
        if value is None:
            value = ""
        elif isinstance(value, bool):
            value = str(value).lower()
        parts.append(f"{key}={value}")
    return "&".join(parts)


class PayOSClient:
    """Follows the Flask extension shape so it can live in ``core.extensions``."""

    def __init__(self, app=None):
        self.client_id = None
        self.api_key = None
        self.checksum_key = None
        self.base_url = None
        self.timeout = 30
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.client_id = app.config.get("PAYOS_CLIENT_ID")
        self.api_key = app.config.get("PAYOS_API_KEY")
        self.checksum_key = app.config.get("PAYOS_CHECKSUM_KEY")
        self.base_url = app.config.get("PAYOS_BASE_URL", "https://api-merchant.payos.vn").rstrip("/")
        self.timeout = app.config.get("PAYOS_TIMEOUT", 30)
        app.extensions["payos"] = self

    def sign(self, fields):
        key = (self.checksum_key or "").encode("utf-8")
        return hmac.new(key, _signature_payload(fields).encode("utf-8"), hashlib.sha256).hexdigest()

    def verify_webhook_data(self, data, signature):
        if not signature:
            return False
        return hmac.compare_digest(self.sign(data), signature)

    def _headers(self):
        return {
            "x-client-id": self.client_id or "",
            "x-api-key": self.api_key or "",
            "Content-Type": "application/json",
        }

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            logger.warning("PayOS %s %s timed out after %ss", method, path, self.timeout)
            raise UpstreamError("Payment provider timed out") from e
        except requests.RequestException as e:
            logger.warning("PayOS %s %s failed: %s", method, path, e)
            raise UpstreamError("Payment provider unavailable", error=str(e)) from e

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError("Invalid response from payment provider",
                                error=f"HTTP {response.status_code}") from e

        if response.status_code >= 400 or body.get("code") != SUCCESS_CODE:
            raise UpstreamError("Payment provider rejected the request",
                                error=body.get("desc") or f"HTTP {response.status_code}")
        return body.get("data") or {}

    def create_payment_link(self, payment_data):
        """Create a checkout link. Returns the provider ``data`` object (with ``checkoutUrl``)."""
        payload = dict(payment_data)
        payload["signature"] = self.sign({
            "amount": payload["amount"],
            "cancelUrl": payload["cancelUrl"],
            "description": payload["description"],
            "orderCode": payload["orderCode"],
            "returnUrl": payload["returnUrl"],
        })
        return self._request("POST", "/v2/payment-requests", json=payload)

    def get_payment_link_information(self, order_code):
        return self._request("GET", f"/v2/payment-requests/{order_code}")
