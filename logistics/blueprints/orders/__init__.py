"""Orders blueprint package (routes in routes.py)."""

from .routes import orders_bp  # noqa: F401
