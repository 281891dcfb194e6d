"""Distribution blueprint package (routes in routes.py)."""

from .routes import distribution_bp  # noqa: F401
