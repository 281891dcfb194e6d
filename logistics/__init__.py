"""
logistics/__init__.py

Flask application factory for the Logistics Order Management service.

Requirements:
- JSON API only (no templates): every blueprint returns JSON, every error too.
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev.
- UI is never trusted; validation and access control are enforced server-side.

Blueprints:
- auth          login / logout / admin mode
- orders        orders and order lines
- distribution  allocations and distribution completion
- finance       supplier balances and payments
- references    items and suppliers
- admin         dashboard, audit trail, users, export / import
"""

from __future__ import annotations

import json
import logging
import sys

import click
from flask import Flask, jsonify
from flask_login import current_user
from werkzeug.exceptions import HTTPException

from .errors import LogisticsError
from .extensions import csrf, db, login_manager, migrate
from .models import User

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(app: Flask) -> None:
    """Attach one stdout handler to the package logger at LOG_LEVEL."""
    package_logger = logging.getLogger(__name__)
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    package_logger.setLevel(level)

    if not any(getattr(h, "_logistics_handler", False) for h in package_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._logistics_handler = True
        package_logger.addHandler(handler)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LogisticsError)
    def handle_domain_error(exc: LogisticsError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        body = {
            "error": (exc.name or "error").lower().replace(" ", "_"),
            "message": exc.description,
            "details": {},
        }
        return jsonify(body), exc.code


def register_cli(app: Flask) -> None:
    @app.cli.command("seed-admin")
    def seed_admin_command():
        """Create the default admin user when no user exists."""
        from .repository import Store
        from .seed import seed_default_admin

        user = seed_default_admin(Store())
        if user is None:
            click.echo("Users already exist; nothing seeded.")
        else:
            click.echo(f"Default admin '{user.username}' created.")

    @app.cli.command("export-data")
    @click.argument("path", type=click.Path(dir_okay=False, writable=True))
    def export_data_command(path):
        """Write every collection to a JSON file."""
        from .repository import Store
        from .services.transfer import export_data

        document = export_data(Store())
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(document, fh, ensure_ascii=False, indent=2)
        click.echo(f"Exported to {path}.")

    @app.cli.command("import-data")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    def import_data_command(path):
        """Replace all data (except users, which are merged) from a JSON file."""
        from .repository import Store
        from .security import SYSTEM_CONTEXT
        from .services.transfer import import_data

        with open(path, encoding="utf-8") as fh:
            document = json.load(fh)
        try:
            result = import_data(Store(), SYSTEM_CONTEXT, document)
        except LogisticsError as exc:
            raise click.ClickException(exc.message) from exc
        counts = ", ".join(f"{k}={v}" for k, v in result.extra["imported"].items())
        click.echo(f"Imported: {counts}")


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.ensure_ascii = False

    configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "unauthorized", "message": "Login required", "details": {}}), 401

    register_error_handlers(app)

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.admin import admin_bp
    from .blueprints.auth import auth_bp
    from .blueprints.distribution import distribution_bp
    from .blueprints.finance import finance_bp
    from .blueprints.orders import orders_bp
    from .blueprints.references import references_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(distribution_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(references_bp)
    app.register_blueprint(admin_bp)

    register_cli(app)

    @app.route("/")
    def index():
        return jsonify(
            {
                "app": app.config.get("APP_NAME"),
                "authenticated": bool(current_user.is_authenticated),
            }
        )

    logger.debug("Application created with %s", config_object)
    return app
