"""
logistics/security.py

Identity / authorization context.

Key rules:
- The acting user comes from Flask-Login's current_user.
- "Admin mode" is a session-scoped flag that only users with role `admin`
  can switch on. It resets on login and logout.
- Admin mode gates destructive operations: deleting orders and order lines,
  editing/deleting reference data, user management, data import/clear.

Services receive an ActorContext instead of reading Flask globals, so they
can be called from CLI commands and tests with an explicit actor.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional

from flask import has_request_context, session
from flask_login import current_user

from .errors import AuthorizationError

ADMIN_MODE_SESSION_KEY = "admin_mode"


@dataclass(frozen=True)
class ActorContext:
    user_id: Optional[int] = None
    username: Optional[str] = None
    admin_mode: bool = False


SYSTEM_CONTEXT = ActorContext(user_id=None, username="system", admin_mode=True)


def is_admin() -> bool:
    """Return True if current user is authenticated and has the admin role."""
    return bool(current_user.is_authenticated and getattr(current_user, "is_admin", False))


def admin_mode_enabled() -> bool:
    if not has_request_context() or not is_admin():
        return False
    return bool(session.get(ADMIN_MODE_SESSION_KEY, False))


def set_admin_mode(enabled: bool) -> bool:
    """
    Toggle admin mode for the current session.

    Raises:
        AuthorizationError: if a non-admin user tries to enable it.
    """
    if enabled and not is_admin():
        raise AuthorizationError("Only administrators can enable admin mode")
    session[ADMIN_MODE_SESSION_KEY] = bool(enabled)
    return bool(enabled)


def reset_admin_mode() -> None:
    session.pop(ADMIN_MODE_SESSION_KEY, None)


def current_context() -> ActorContext:
    """Build the ActorContext for the current request."""
    if not current_user.is_authenticated:
        return ActorContext()
    return ActorContext(
        user_id=current_user.id,
        username=current_user.username,
        admin_mode=admin_mode_enabled(),
    )


def require_admin_mode(ctx: ActorContext, action: str) -> None:
    """Gate a destructive operation on the admin-mode flag."""
    if not ctx.admin_mode:
        raise AuthorizationError(
            f"Enable admin mode to {action}",
            {"action": action},
        )


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator: route requires an authenticated user with the admin role.

    SECURITY:
    - Server-side enforcement (UI never trusted).
    """
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not is_admin():
            raise AuthorizationError("Administrator role required")
        return view_func(*args, **kwargs)

    return wrapper


def admin_mode_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: route requires admin mode in the current session."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        require_admin_mode(current_context(), "access this page")
        return view_func(*args, **kwargs)

    return wrapper
