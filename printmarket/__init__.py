import logging

from flask import Flask, jsonify
from .config import Config
from .extensions import db, login_manager, migrate
from .exceptions import MarketplaceError
from .routes import (
    auctions_bp, listings_bp, offers_bp, bids_bp, checkout_bp, payments_bp, admin_bp, platform_bp
)

logger = logging.getLogger(__name__)


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    _configure_logging(app)

    # Pool options only make sense for server databases
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {}

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.register_blueprint(auctions_bp)
    app.register_blueprint(listings_bp)
    app.register_blueprint(offers_bp)
    app.register_blueprint(bids_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(platform_bp)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "You must be logged in"}), 401

    # Register error handlers
    @app.errorhandler(MarketplaceError)
    def marketplace_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        logger.error("Unhandled error: %s", getattr(error, "original_exception", error))
        return jsonify({"error": "Internal server error"}), 500

    with app.app_context():
        from . import models  # noqa: F401  (registers tables and login loaders)
        db.create_all()

    return app
