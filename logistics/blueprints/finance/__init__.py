"""Finance blueprint package (routes in routes.py)."""

from .routes import finance_bp  # noqa: F401
