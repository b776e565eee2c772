# backend/retailbooks/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Stub e-document gateway; tests may swap the instance
    from .services.gib_gateway import GibGateway
    app.extensions["gib_gateway"] = GibGateway(reject=app.config.get("GIB_GATEWAY_REJECT", False))

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.tenant import tenant_bp
    from .routes.admin import admin_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.customers import customers_bp
    from .routes.sales import sales_bp
    from .routes.returns import returns_bp
    from .routes.quotes import quotes_bp
    from .routes.accounts import accounts_bp
    from .routes.payments import payments_bp
    from .routes.expenses import expenses_bp
    from .routes.edocuments import edocuments_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(tenant_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(accounts_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(edocuments_bp)
    app.register_blueprint(reports_bp)

    _register_error_handlers(app)

    @app.after_request
    def write_deferred_security_events(response):
        from .services.permission_service import flush_deferred_events
        flush_deferred_events()
        return response

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ALLOWED_ORIGINS", set()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Impersonate-Tenant"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def _register_error_handlers(app: Flask) -> None:
    """Every error leaves the API in the JSON envelope."""
    from .responses import fail, error_response, internal_error
    from .validation import DomainError
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(DomainError)
    def handle_domain_error(e):
        return error_response(e)

    @app.errorhandler(404)
    def handle_not_found(e):
        return fail("Resource not found", 404, "NOT_FOUND")

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return fail("Method not allowed", 405, "METHOD_NOT_ALLOWED")

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return fail(e.description or e.name, e.code or 500, e.name.upper().replace(" ", "_"))
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return internal_error()
