"""
logistics/services/base.py

Command plumbing shared by all services.

Pattern (one transaction per command):
    validate -> mutate through the store (flush) -> log_action(...) -> commit

Every command returns a CommandResult pairing the resulting entity with the
AuditLog entry that describes it. The `command` decorator refuses to commit a
result without an audit entry, rolls back on any error, and converts storage
failures into PersistenceError.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from functools import wraps
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..errors import LogisticsError, PersistenceError, ValidationError
from ..models import AuditLog, Currency

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    entity: Any
    audit: Optional[AuditLog]
    warnings: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)


def command(func=None, *, audited: bool = True):
    """
    Wrap a service command `fn(store, ctx, ...) -> CommandResult` in a transaction.

    audited=False is reserved for bulk maintenance commands (import, clear)
    that replace the audit trail itself.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(store, ctx, *args, **kwargs):
            try:
                result = fn(store, ctx, *args, **kwargs)
            except LogisticsError as exc:
                store.rollback()
                logger.warning("%s rejected: %s", fn.__name__, exc.message)
                raise
            except SQLAlchemyError as exc:
                store.rollback()
                logger.exception("%s failed in storage", fn.__name__)
                raise PersistenceError(
                    f"Storage error during {fn.__name__}",
                    {"operation": fn.__name__},
                ) from exc

            if audited and (result is None or result.audit is None):
                store.rollback()
                raise RuntimeError(f"{fn.__name__} finished without an audit entry")

            try:
                store.commit()
            except SQLAlchemyError as exc:
                store.rollback()
                logger.exception("%s failed to commit", fn.__name__)
                raise PersistenceError(
                    f"Storage error during {fn.__name__}",
                    {"operation": fn.__name__},
                ) from exc

            logger.info("%s committed by user=%s", fn.__name__, ctx.user_id)
            return result

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


# ---------------------------------------------------------------------
# Parsing helpers (UI is never trusted)
# ---------------------------------------------------------------------
def parse_positive_float(value, field_name: str) -> float:
    """Parse a strictly positive number (accepts comma or dot)."""
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field_name} is required", {"field": field_name})
    try:
        number = float(str(value).strip().replace(",", "."))
    except ValueError:
        raise ValidationError(f"{field_name} must be a number", {"field": field_name}) from None
    if not math.isfinite(number) or number <= 0:
        raise ValidationError(f"{field_name} must be greater than zero", {"field": field_name})
    return number


def parse_decimal(value, field_name: str, allow_zero: bool = True) -> Decimal:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field_name} is required", {"field": field_name})
    try:
        number = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number", {"field": field_name}) from None
    if not number.is_finite() or number < 0 or (number == 0 and not allow_zero):
        raise ValidationError(f"{field_name} has an invalid value", {"field": field_name})
    return number


def parse_optional_int(value) -> Optional[int]:
    """Parse optional int; returns None for empty/invalid."""
    if value is None:
        return None
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_required_id(value, field_name: str) -> int:
    entity_id = parse_optional_int(value)
    if not entity_id:
        raise ValidationError(f"Select a {field_name}", {"field": field_name})
    return entity_id


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


def parse_currency(value) -> str:
    try:
        return Currency(str(value or Currency.USD.value).strip().upper()).value
    except ValueError:
        raise ValidationError(f"Unknown currency: {value!r}", {"field": "currency"}) from None


def parse_date(value) -> date:
    if value is None or str(value).strip() == "":
        return date.today()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError("Date must be YYYY-MM-DD", {"field": "date"}) from None


def clean_text(value) -> Optional[str]:
    text = (str(value) if value is not None else "").strip()
    return text or None
