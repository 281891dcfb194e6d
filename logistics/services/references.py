"""
Reference data: items and suppliers.

Anyone logged in can create; editing and deleting need admin mode.
Deleting an entity still referenced by orders, allocations or payments is
rejected.
"""

from __future__ import annotations

from typing import Any, Dict

from ..audit import log_action, serialize_model
from ..core.units import Unit, parse_unit
from ..errors import ValidationError
from ..models import AuditAction, Item, Supplier
from ..security import ActorContext, require_admin_mode
from .base import CommandResult, clean_text, command


def _required_name(payload: Dict[str, Any]) -> str:
    name = clean_text(payload.get("name"))
    if not name:
        raise ValidationError("Name is required", {"field": "name"})
    return name


def _item_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": _required_name(payload),
        "unit": parse_unit(payload.get("unit") or Unit.TON.value).value,
        "category": clean_text(payload.get("category")),
        "description": clean_text(payload.get("description")),
    }


def _supplier_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": _required_name(payload),
        "contacts": clean_text(payload.get("contacts")),
        "notes": clean_text(payload.get("notes")),
    }


def _ensure_unreferenced(entity, usages: Dict[str, int]) -> None:
    used = {name: count for name, count in usages.items() if count}
    if used:
        raise ValidationError(
            f"{entity.__class__.__name__} '{entity.name}' is still in use and cannot be deleted",
            {"references": used},
        )


# ---------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------
@command
def create_item(store, ctx: ActorContext, payload: Dict[str, Any]) -> CommandResult:
    item = store.items.add(Item(**_item_fields(payload)))
    audit = log_action(store, ctx, item, AuditAction.CREATE, serialize_model(item))
    return CommandResult(item, audit)


@command
def update_item(store, ctx: ActorContext, item_id, payload: Dict[str, Any]) -> CommandResult:
    require_admin_mode(ctx, "edit items")
    item = store.items.get_or_raise(item_id)
    before = serialize_model(item)

    for key, value in _item_fields(payload).items():
        setattr(item, key, value)
    store.session.flush()

    audit = log_action(store, ctx, item, AuditAction.UPDATE, {"before": before, "after": serialize_model(item)})
    return CommandResult(item, audit)


@command
def delete_item(store, ctx: ActorContext, item_id) -> CommandResult:
    require_admin_mode(ctx, "delete items")
    item = store.items.get_or_raise(item_id)
    _ensure_unreferenced(
        item,
        {
            "order_lines": store.order_lines.count(item_id=item.id),
            "allocations": store.allocations.count(item_id=item.id),
        },
    )

    before = serialize_model(item)
    store.items.delete(item)
    audit = log_action(store, ctx, item, AuditAction.DELETE, before)
    return CommandResult(item, audit)


# ---------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------
@command
def create_supplier(store, ctx: ActorContext, payload: Dict[str, Any]) -> CommandResult:
    supplier = store.suppliers.add(Supplier(**_supplier_fields(payload)))
    audit = log_action(store, ctx, supplier, AuditAction.CREATE, serialize_model(supplier))
    return CommandResult(supplier, audit)


@command
def update_supplier(store, ctx: ActorContext, supplier_id, payload: Dict[str, Any]) -> CommandResult:
    require_admin_mode(ctx, "edit suppliers")
    supplier = store.suppliers.get_or_raise(supplier_id)
    before = serialize_model(supplier)

    for key, value in _supplier_fields(payload).items():
        setattr(supplier, key, value)
    store.session.flush()

    audit = log_action(
        store, ctx, supplier, AuditAction.UPDATE, {"before": before, "after": serialize_model(supplier)}
    )
    return CommandResult(supplier, audit)


@command
def delete_supplier(store, ctx: ActorContext, supplier_id) -> CommandResult:
    require_admin_mode(ctx, "delete suppliers")
    supplier = store.suppliers.get_or_raise(supplier_id)
    _ensure_unreferenced(
        supplier,
        {
            "allocations": store.allocations.count(supplier_id=supplier.id),
            "payments": store.payments.count(supplier_id=supplier.id),
        },
    )

    before = serialize_model(supplier)
    store.suppliers.delete(supplier)
    audit = log_action(store, ctx, supplier, AuditAction.DELETE, before)
    return CommandResult(supplier, audit)
