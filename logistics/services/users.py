"""
User management (admin mode only).

Rules enforced:
- username is unique and required; password is required on create.
- role must be one of admin / logist / finance.
- Password hashes never appear in audit details.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..audit import log_action, serialize_model
from ..errors import ValidationError
from ..models import AuditAction, Role, User
from ..security import ActorContext, require_admin_mode
from .base import CommandResult, clean_text, command, parse_bool

logger = logging.getLogger(__name__)

_AUDIT_EXCLUDE = ("password_hash",)


def _parse_role(value) -> str:
    try:
        return Role(str(value or Role.LOGIST.value).strip().lower()).value
    except ValueError:
        raise ValidationError(f"Unknown role: {value!r}", {"field": "role"}) from None


def authenticate(store, username: str, password: str) -> Optional[User]:
    """Return the active user matching the credentials, else None."""
    user = store.users.first_by(username=(username or "").strip())
    if user is None or not user.is_active or not user.check_password(password or ""):
        logger.info("Failed login attempt for username=%r", username)
        return None
    return user


@command
def create_user(store, ctx: ActorContext, payload: Dict[str, Any]) -> CommandResult:
    require_admin_mode(ctx, "manage users")

    username = clean_text(payload.get("username"))
    password = (payload.get("password") or "").strip()
    if not username or not password:
        raise ValidationError("Username and password are required")
    if store.users.first_by(username=username):
        raise ValidationError(f"Username '{username}' already exists", {"field": "username"})

    user = User(
        username=username,
        role=_parse_role(payload.get("role")),
        full_name=clean_text(payload.get("full_name")) or username,
        is_active=True,
    )
    user.set_password(password)
    store.users.add(user)

    audit = log_action(store, ctx, user, AuditAction.CREATE, serialize_model(user, exclude=_AUDIT_EXCLUDE))
    return CommandResult(user, audit)


@command
def update_user(store, ctx: ActorContext, user_id, payload: Dict[str, Any]) -> CommandResult:
    require_admin_mode(ctx, "manage users")
    user = store.users.get_or_raise(user_id)
    before = serialize_model(user, exclude=_AUDIT_EXCLUDE)

    if "role" in payload:
        user.role = _parse_role(payload.get("role"))
    if "full_name" in payload:
        user.full_name = clean_text(payload.get("full_name")) or user.username
    if "is_active" in payload:
        is_active = parse_bool(payload.get("is_active"))
        if user.id == ctx.user_id and not is_active:
            raise ValidationError("You cannot deactivate your own account")
        user.is_active = is_active

    password = (payload.get("password") or "").strip()
    if password:
        user.set_password(password)
    store.session.flush()

    after = serialize_model(user, exclude=_AUDIT_EXCLUDE)
    details = {"before": before, "after": after}
    if password:
        details["passwordChanged"] = True
    audit = log_action(store, ctx, user, AuditAction.UPDATE, details)
    return CommandResult(user, audit)
