# backend/stockledger/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate
from .services.concurrency import TenantLockRegistry
from .services.notifier import ChangeBroadcaster


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Per-app registries; tests and workers each get their own
    app.extensions["stockledger.locks"] = TenantLockRegistry()
    app.extensions["stockledger.broadcaster"] = ChangeBroadcaster(app.config.get("CHANGE_HISTORY_SIZE", 200))

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.invoices import invoices_bp
    from .routes.quotations import quotations_bp
    from .routes.returns import returns_bp
    from .routes.repairs import repairs_bp
    from .routes.damaged_stock import damaged_stock_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(quotations_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(repairs_bp)
    app.register_blueprint(damaged_stock_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-Tenant-Id, X-Actor-Id"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
