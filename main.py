import logging

from werkzeug.exceptions import HTTPException
from apscheduler.schedulers.background import BackgroundScheduler

from core.imports import jsonify, Flask
from core.config import Config
from core.errors import ApiError
from core.logging import setup_logging
from core.commands import expire_payments_command, seed_demo_command, seed_demo
from core.extensions import db, jwt, swagger, cors, bcrypt, migrate, mail, payos
from routes.auth import auth_bp
from routes.products import products_bp
from routes.cart import cart_bp
from routes.orders import orders_bp
from routes.payments import payments_bp
from routes.batches import batches_bp
from routes.suppliers import suppliers_bp
from routes.stockMovements import stock_movements_bp
from services import payment_service

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            logger.error("%s: %s", type(error).__name__, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return jsonify({"message": error.description}), error.code
        logger.exception("Unhandled error")
        return jsonify({"message": "Internal server error"}), 500

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"message": "Missing or invalid token", "error": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"message": "Missing or invalid token", "error": reason}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"message": "Token has expired"}), 401


def start_scheduler(app):
    def sweep():
        with app.app_context():
            try:
                payment_service.expire_stale_payments()
            except Exception:
                logger.exception("Payment sweep failed")

    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(sweep, "interval", seconds=app.config["PAYMENT_SWEEP_INTERVAL_SECONDS"],
                      id="expire-payments", max_instances=1, coalesce=True)
    scheduler.start()
    app.extensions["scheduler"] = scheduler
    logger.info("payment sweep scheduled every %ss", app.config["PAYMENT_SWEEP_INTERVAL_SECONDS"])
    return scheduler


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    setup_logging(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    jwt.init_app(app)
    swagger.init_app(app)
    cors.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    payos.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(batches_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(stock_movements_bp)

    register_error_handlers(app)

    app.cli.add_command(expire_payments_command)
    app.cli.add_command(seed_demo_command)

    @app.route("/ping")
    def ping():
        return "Ping received", 200

    if app.config.get("SCHEDULER_ENABLED"):
        start_scheduler(app)

    return app


app = create_app()


if __name__ == "__main__":
    with app.app_context():
        seed_demo()
    app.run(debug=True, port=app.config["PORT"])
