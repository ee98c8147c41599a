# backend/ecodues/__init__.py
import logging

from flask import Flask, jsonify

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before the extensions bind to the database URL
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Unknown resolution policy is a startup error
    from .services.resolution_service import check_policy
    check_policy(app.config.get("DUE_RESOLUTION_POLICY", "first_match"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.purchases import purchases_bp
    from .routes.dues import dues_bp
    from .routes.inventory import inventory_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(dues_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(reports_bp)

    from .services.concurrency import PersistenceFailure

    @app.errorhandler(PersistenceFailure)
    def handle_persistence_failure(exc):
        app.logger.error("Persistence failure: %s", exc)
        return jsonify({"error": "Database unavailable, nothing was saved"}), 503

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
