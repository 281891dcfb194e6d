"""
logistics/audit.py

Audit logging helper utilities.

Goals:
- Capture WHO did WHAT to WHICH entity, with a free-form details payload.
- Store username snapshot to preserve identity even if the user is removed later.
- Store IP address for traceability when running inside a request.

IMPORTANT:
- This helper ADDS AuditLog entries to the current session through the store.
  The command decorator controls transaction boundaries (commit/rollback).
- Call it after flush(), so the entity has an id.
"""

from __future__ import annotations

import enum
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import has_request_context, request

from .models import AuditLog
from .security import ActorContext

# Entity names shown in the audit trail.
ENTITY_NAMES = {
    "PaymentOperation": "Payment",
}


def json_safe(value: Any) -> Any:
    """
    Convert a column value to something json.dumps accepts.

    - Decimal -> float (money is already quantized to cents)
    - datetime/date -> ISO 8601
    - Enum -> its value
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


def serialize_model(instance: Any, exclude: tuple = ()) -> Dict[str, Any]:
    """
    Convert a SQLAlchemy model instance to a dict snapshot based on table columns.

    NOTES:
    - Captures only scalar column values (not relationships).
    """
    data: Dict[str, Any] = {}
    for column in instance.__table__.columns:
        if column.name in exclude:
            continue
        data[column.name] = json_safe(getattr(instance, column.name))
    return data


def entity_type_name(entity: Any) -> str:
    name = entity.__class__.__name__
    return ENTITY_NAMES.get(name, name)


def log_action(
    store,
    ctx: ActorContext,
    entity: Any,
    action: str,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current session and return it.

    Parameters:
        entity: model instance with .id (flushed)
        action: AuditAction value (CREATE / UPDATE / DELETE / REPLACE...)
        details: JSON-serializable payload describing the change
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    entry = AuditLog(
        user_id=ctx.user_id,
        username_snapshot=ctx.username,
        entity_type=entity_type_name(entity),
        entity_id=int(entity_id),
        action=getattr(action, "value", str(action)),
        details=json.dumps(details, ensure_ascii=False, default=json_safe) if details else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    store.audit_logs.add(entry)
    return entry


def audit_details(entry: AuditLog) -> Dict[str, Any]:
    """Decode the details payload of an entry."""
    if not entry.details:
        return {}
    return json.loads(entry.details)
