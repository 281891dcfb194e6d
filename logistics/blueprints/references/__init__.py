"""References blueprint package (routes in routes.py)."""

from .routes import references_bp  # noqa: F401
