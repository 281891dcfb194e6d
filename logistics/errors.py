"""
logistics/errors.py

Domain error taxonomy.

Every error raised by the core or by a service command derives from
LogisticsError. The app factory renders them as JSON with the HTTP status
declared on the class:

    {"error": <code>, "message": <text>, "details": {...}}

IMPORTANT:
- Raising any of these aborts the current command; the command decorator rolls
  the session back, so no partial state is committed.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LogisticsError(Exception):
    """Base class for all domain errors."""

    status_code = 400
    code = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(LogisticsError):
    """User input malformed: non-numeric/zero/negative quantity, missing selection."""

    status_code = 400
    code = "validation_error"


class OverAllocationError(LogisticsError):
    """Allocation (or replacement) would exceed the order line beyond tolerance."""

    status_code = 409
    code = "over_allocation"


class ContainerOverloadError(LogisticsError):
    """Item would exceed the container capacity."""

    status_code = 409
    code = "container_overload"


class AuthorizationError(LogisticsError):
    """Destructive operation attempted without admin mode."""

    status_code = 403
    code = "authorization_error"


class NotFoundError(LogisticsError):
    """Referenced entity id does not exist."""

    status_code = 404
    code = "not_found"


class OrderStateError(LogisticsError):
    """Mutation or status transition not allowed in the order's current status."""

    status_code = 409
    code = "order_state_error"


class IncompleteDistributionError(LogisticsError):
    """Completing distribution requires an explicit override (partial distribution)."""

    status_code = 409
    code = "incomplete_distribution"


class PersistenceError(LogisticsError):
    """Underlying storage call failed. The command was rolled back."""

    status_code = 500
    code = "persistence_error"
