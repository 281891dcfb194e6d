"""Admin blueprint package (routes in routes.py)."""

from .routes import admin_bp  # noqa: F401
