from datetime import timedelta
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///pharmacos.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)

    MAIL_SERVER = os.getenv("MAIL_SERVER", 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.getenv("USERNAME_FOR_EMAIL")
    MAIL_PASSWORD = os.getenv("PASSWORD_FOR_EMAIL")
    MAIL_DEFAULT_SENDER = os.getenv("USERNAME_FOR_EMAIL")

    # PayOS hosted checkout
    PAYOS_CLIENT_ID = os.environ.get("PAYOS_CLIENT_ID")
    PAYOS_API_KEY = os.environ.get("PAYOS_API_KEY")
    PAYOS_CHECKSUM_KEY = os.environ.get("PAYOS_CHECKSUM_KEY")
    PAYOS_BASE_URL = os.environ.get("PAYOS_BASE_URL", "https://api-merchant.payos.vn")
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
    PAYOS_RETURN_URL = os.environ.get("PAYOS_RETURN_URL") or f"{FRONTEND_URL}/payment/success"
    PAYOS_CANCEL_URL = os.environ.get("PAYOS_CANCEL_URL") or f"{FRONTEND_URL}/payment/cancel"
    PAYOS_TIMEOUT = int(os.environ.get("PAYOS_TIMEOUT", 30))
    PAYOS_VERIFY_WEBHOOK = _env_bool("PAYOS_VERIFY_WEBHOOK")

    SHIPPING_FEE = int(os.environ.get("SHIPPING_FEE", 1000))
    PAYMENT_TIMEOUT_SECONDS = int(os.environ.get("PAYMENT_TIMEOUT_SECONDS", 120))
    PENDING_PAYMENT_REUSE_MINUTES = 30
    PAYMENT_SWEEP_INTERVAL_SECONDS = int(os.environ.get("PAYMENT_SWEEP_INTERVAL_SECONDS", 60))
    SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED")

    AUTO_SALE_DAYS = 30
    AUTO_SALE_RATE = 0.9
    LOW_STOCK_THRESHOLD = 10

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    PORT = int(os.environ.get("PORT", 5000))

    SWAGGER = {
        "title": "Pharmacos API",
        "uiversion": 3,
        "securityDefinitions": {
            "Bearer": {"type": "apiKey", "name": "Authorization", "in": "header"}
        },
    }
