"""
logistics/services/transfer.py

Full-data export / import / clear.

Document format (JSON object):
    {"USERS": [...], "ITEMS": [...], "SUPPLIERS": [...], "ORDERS": [...],
     "ORDER_LINES": [...], "ALLOCATIONS": [...], "PAYMENTS": [...],
     "AUDIT_LOGS": [...]}
Each row is a column snapshot (serialize_model), ids included. User rows
carry no password hash; imported users without credentials get an unusable
random password until an administrator sets one.

IMPORTANT:
- Import and clear need admin mode and run as ONE transaction.
- Users are never wiped: imported users are merged (an existing id or
  username wins), and references to a merged user are remapped to it.
- Import replaces the audit trail with the imported one, so these two
  commands are not audited themselves; they are logged instead.
"""

from __future__ import annotations

import logging
import secrets
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import Date, DateTime, Numeric

from ..audit import serialize_model
from ..errors import ValidationError
from ..models import Allocation, AuditLog, Item, Order, OrderLine, PaymentOperation, Supplier, User
from ..security import ActorContext, require_admin_mode
from ..seed import seed_default_admin
from .base import CommandResult, command

logger = logging.getLogger(__name__)

# Insert order (dependencies first). Deletion runs in reverse.
COLLECTIONS = (
    ("USERS", "users", User),
    ("ITEMS", "items", Item),
    ("SUPPLIERS", "suppliers", Supplier),
    ("ORDERS", "orders", Order),
    ("ORDER_LINES", "order_lines", OrderLine),
    ("ALLOCATIONS", "allocations", Allocation),
    ("PAYMENTS", "payments", PaymentOperation),
    ("AUDIT_LOGS", "audit_logs", AuditLog),
)

# Columns holding a user id, remapped when imported users are merged.
_USER_REFERENCES = {
    "ORDERS": "created_by",
    "PAYMENTS": "created_by",
    "AUDIT_LOGS": "user_id",
}

# Password hashes never leave the database.
_EXPORT_EXCLUDE = {"USERS": ("password_hash",)}


def export_data(store) -> Dict[str, List[Dict[str, Any]]]:
    document = {}
    for key, attr, _model in COLLECTIONS:
        exclude = _EXPORT_EXCLUDE.get(key, ())
        document[key] = [serialize_model(row, exclude=exclude) for row in getattr(store, attr).list()]
    logger.info(
        "Exported %s",
        ", ".join(f"{key}={len(rows)}" for key, rows in document.items()),
    )
    return document


def _coerce(column, value):
    """Parse a JSON value back into the column's Python type."""
    if value is None:
        return None
    try:
        if isinstance(column.type, DateTime) and isinstance(value, str):
            return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
        if isinstance(column.type, Date) and isinstance(value, str):
            return date.fromisoformat(value[:10])
        if isinstance(column.type, Numeric):
            return Decimal(str(value))
    except (ValueError, ArithmeticError):
        raise ValidationError(
            f"Invalid value for {column.table.name}.{column.name}: {value!r}",
            {"column": f"{column.table.name}.{column.name}"},
        ) from None
    return value


def _build(model, row: Dict[str, Any]):
    columns = model.__table__.columns
    values = {c.name: _coerce(c, row[c.name]) for c in columns if c.name in row}
    return model(**values)


def _clear(store) -> Dict[str, int]:
    """Delete every collection except users, dependents first."""
    counts = {}
    for key, attr, _model in reversed(COLLECTIONS):
        if key == "USERS":
            continue
        counts[key] = getattr(store, attr).delete_all()
    return counts


def _merge_users(store, rows: List[Dict[str, Any]]) -> Dict[Any, int]:
    """Insert unknown users; return {imported id: id in this database}."""
    id_map: Dict[Any, int] = {}
    for row in rows:
        existing = store.users.get(row.get("id")) if row.get("id") is not None else None
        if existing is None:
            existing = store.users.first_by(username=row.get("username"))
        if existing is not None:
            id_map[row.get("id")] = existing.id
            continue

        if not row.get("username"):
            raise ValidationError("Imported user without username", {"row": row})
        user = _build(User, {k: v for k, v in row.items() if k != "password"})
        if row.get("password"):
            # Exports of the legacy store carry plaintext passwords.
            user.set_password(row["password"])
        elif not row.get("password_hash"):
            user.set_password(secrets.token_urlsafe(32))
            logger.warning("Imported user %s has no password; an administrator must set one", user.username)
        store.users.add(user)
        id_map[row.get("id")] = user.id
    return id_map


@command(audited=False)
def import_data(store, ctx: ActorContext, document: Dict[str, Any]) -> CommandResult:
    require_admin_mode(ctx, "import data")
    if not isinstance(document, dict):
        raise ValidationError("Import file must contain a JSON object")

    unknown = set(document) - {key for key, _attr, _model in COLLECTIONS}
    if unknown:
        raise ValidationError("Unknown collections in import file", {"collections": sorted(unknown)})

    for key in document:
        if not isinstance(document[key], list):
            raise ValidationError(f"{key} must be a list", {"collection": key})

    cleared = _clear(store)
    user_ids = _merge_users(store, document.get("USERS") or [])

    inserted = {"USERS": len(document.get("USERS") or [])}
    for key, attr, model in COLLECTIONS:
        if key == "USERS":
            continue
        rows = document.get(key) or []
        ref = _USER_REFERENCES.get(key)
        for row in rows:
            if ref and row.get(ref) is not None:
                row = dict(row, **{ref: user_ids.get(row[ref], row[ref])})
            store.session.add(_build(model, row))
        store.session.flush()
        inserted[key] = len(rows)

    logger.warning("Data import by user=%s replaced %s with %s", ctx.user_id, cleared, inserted)
    return CommandResult(None, None, extra={"cleared": cleared, "imported": inserted})


@command(audited=False)
def clear_all_data(store, ctx: ActorContext) -> CommandResult:
    require_admin_mode(ctx, "clear all data")
    cleared = _clear(store)
    admin = seed_default_admin(store, commit=False)
    logger.warning("All data cleared by user=%s: %s", ctx.user_id, cleared)
    return CommandResult(admin, None, extra={"cleared": cleared})
