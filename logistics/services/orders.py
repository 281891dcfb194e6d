"""
logistics/services/orders.py

Order and order-line commands.

Enterprise rules enforced here:
- New orders start `locked` and get the next ORD-### number.
- Lines are added/edited/replaced/deleted only while the order is `locked`.
- Restructuring a line (edit, replace, delete) first removes its allocations.
- Container-packed lines are re-validated against their container capacity.
- Deleting a line or an order requires admin mode.
- Order deletion is a cascade (lines, allocations, payments, order) executed
  by DeletionSaga and audited by a single Order-level DELETE entry.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from ..audit import log_action, serialize_model
from ..core import ledger, lifecycle, packing
from ..core.units import CONTAINER_CAPACITIES, TONS_IN_CONTAINER_DEFAULT, Unit, parse_unit, to_tons
from ..errors import PersistenceError, ValidationError
from ..models import AuditAction, Order, OrderLine
from ..security import ActorContext, require_admin_mode
from .base import CommandResult, clean_text, command, parse_optional_int, parse_positive_float, parse_required_id

logger = logging.getLogger(__name__)

ORDER_NUMBER_PATTERN = re.compile(r"ORD-(\d+)")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def next_order_number(store) -> str:
    """
    ORD- followed by max(existing numeric suffixes) + 1, zero-padded to 3 digits.

    NOTE:
    - Not a persisted counter: two concurrent creations could collide
      (the unique constraint on order_number then rejects the second one).
    """
    highest = 0
    for (number,) in store.orders.query().with_entities(Order.order_number).all():
        match = ORDER_NUMBER_PATTERN.match(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"ORD-{highest + 1:03d}"


def parse_container_size(value, default: float = TONS_IN_CONTAINER_DEFAULT) -> float:
    if value is None or str(value).strip() == "":
        return float(default)
    size = parse_positive_float(value, "container_size")
    if size not in CONTAINER_CAPACITIES:
        raise ValidationError(
            f"Container size must be one of {', '.join(str(c) for c in CONTAINER_CAPACITIES)} t",
            {"field": "container_size", "value": value},
        )
    return size


def _line_values(store, payload: Dict[str, Any], container_size: Optional[float]) -> Dict[str, Any]:
    """Validate an item/quantity/unit payload and compute the canonical tons."""
    item_id = parse_required_id(payload.get("item_id"), "item")
    store.items.get_or_raise(item_id)

    quantity = parse_positive_float(payload.get("quantity"), "quantity")
    unit = parse_unit(payload.get("unit") or Unit.TON.value)

    capacity = container_size or TONS_IN_CONTAINER_DEFAULT
    return {
        "item_id": item_id,
        "quantity": quantity,
        "unit": unit.value,
        "quantity_in_tons": to_tons(quantity, unit, capacity),
    }


def _flat_line_size(payload: Dict[str, Any]) -> Optional[float]:
    """Flat lines only record a container size when entered in containers."""
    unit = parse_unit(payload.get("unit") or Unit.TON.value)
    if unit is Unit.CONTAINER:
        return parse_container_size(payload.get("container_size"))
    return None


def _container_lines(store, order_id: int, container_index: int, exclude_line_id=None) -> List[OrderLine]:
    return [
        line for line in store.order_lines.list_by(order_id=order_id, container_index=container_index)
        if line.id != exclude_line_id
    ]


def _load_into_container(capacity: float, container_index: int, existing: Sequence, candidate) -> bool:
    """Replay existing lines, then load the candidate. Returns the 80% advisory flag."""
    container = packing.Container(capacity=float(capacity), index=container_index, items=tuple(existing))
    return packing.load(container, candidate).warning_threshold_80


def _load_order(store, order_id) -> Order:
    return store.orders.get_or_raise(order_id)


def _load_line(store, order: Order, line_id) -> OrderLine:
    line = store.order_lines.get_or_raise(line_id)
    if line.order_id != order.id:
        raise ValidationError(
            f"Line {line_id} does not belong to order {order.order_number}",
            {"order_id": order.id, "order_line_id": line_id},
        )
    return line


def order_layout(store, order: Order) -> packing.OrderLayout:
    return packing.layout_order(store.order_lines.list_by(order_id=order.id))


# ---------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------
@command
def create_order(store, ctx: ActorContext, payload: Dict[str, Any]) -> CommandResult:
    """
    Create a locked order with its lines.

    Payload (one of):
        {"name": ..., "lines": [{"item_id", "quantity", "unit", "container_size"?}, ...]}
        {"name": ..., "containers": [{"capacity": 26|27, "lines": [...]}, ...]}
    """
    containers_payload = payload.get("containers") or []
    lines_payload = payload.get("lines") or []

    if containers_payload and lines_payload:
        raise ValidationError("Send either lines or containers, not both")

    warnings: List[str] = []
    rows: List[Dict[str, Any]] = []

    if containers_payload:
        groups = []
        for index, container_payload in enumerate(containers_payload):
            capacity = parse_container_size(container_payload.get("capacity"))
            entries = container_payload.get("lines") or []
            if not entries:
                raise ValidationError(f"Container #{index + 1} is empty", {"container_index": index})
            values = []
            for entry in entries:
                value = _line_values(store, entry, capacity)
                value.update(container_size=capacity, container_index=index)
                values.append(value)
            groups.append((capacity, [SimpleNamespace(**v) for v in values]))
            rows.extend(values)
        _, warnings = packing.pack_lines(groups)
    else:
        for entry in lines_payload:
            size = _flat_line_size(entry)
            value = _line_values(store, entry, size)
            value.update(container_size=size, container_index=None)
            rows.append(value)

    if not rows:
        raise ValidationError("Add at least one line to the order")

    order = store.orders.add(
        Order(
            order_number=next_order_number(store),
            name=clean_text(payload.get("name")),
            status=lifecycle.INITIAL_STATUS.value,
            created_by=ctx.user_id,
            created_at=datetime.utcnow(),
        )
    )
    for row in rows:
        store.order_lines.add(OrderLine(order_id=order.id, **row))

    audit = log_action(
        store,
        ctx,
        order,
        AuditAction.CREATE,
        {
            "orderNumber": order.order_number,
            "linesCount": len(rows),
            "containersCount": len(containers_payload),
        },
    )
    return CommandResult(order, audit, warnings=warnings)


# ---------------------------------------------------------------------
# Lines
# ---------------------------------------------------------------------
@command
def add_line(store, ctx: ActorContext, order_id, payload: Dict[str, Any]) -> CommandResult:
    """
    Add a line to a locked order.

    On container-packed orders `container_index` is required: an existing
    index loads into that container, a new index opens a container of
    `container_size` (default 26 t).
    """
    order = _load_order(store, order_id)
    lifecycle.ensure_lines_mutable(order)

    existing_lines = store.order_lines.list_by(order_id=order.id)
    layout = packing.layout_order(existing_lines)

    warnings: List[str] = []
    if isinstance(layout, packing.ContainerPackedOrder):
        container_index = parse_optional_int(payload.get("container_index"))
        if container_index is None or container_index < 0:
            raise ValidationError("Select a container for the new line", {"field": "container_index"})

        in_container = [line for line in existing_lines if line.container_index == container_index]
        if in_container:
            capacity = in_container[0].container_size or TONS_IN_CONTAINER_DEFAULT
        else:
            capacity = parse_container_size(payload.get("container_size"))

        values = _line_values(store, payload, capacity)
        values.update(container_size=capacity, container_index=container_index)
        if _load_into_container(capacity, container_index, in_container, SimpleNamespace(**values)):
            warnings.append(f"Container #{container_index + 1} is loaded over 80%")
    else:
        size = _flat_line_size(payload)
        values = _line_values(store, payload, size)
        values.update(container_size=size, container_index=None)

    line = store.order_lines.add(OrderLine(order_id=order.id, **values))
    audit = log_action(
        store,
        ctx,
        line,
        AuditAction.ADD,
        {"orderNumber": order.order_number, "line": serialize_model(line)},
    )
    return CommandResult(line, audit, warnings=warnings)


@command
def update_line(store, ctx: ActorContext, order_id, line_id, payload: Dict[str, Any]) -> CommandResult:
    """Edit item/quantity/unit of a line. Its allocations are removed first."""
    order = _load_order(store, order_id)
    lifecycle.ensure_lines_mutable(order)
    line = _load_line(store, order, line_id)
    before = serialize_model(line)

    merged = {
        "item_id": payload.get("item_id", line.item_id),
        "quantity": payload.get("quantity", line.quantity),
        "unit": payload.get("unit", line.unit),
        "container_size": payload.get("container_size", line.container_size),
    }

    warnings: List[str] = []
    if line.container_index is not None:
        capacity = line.container_size or TONS_IN_CONTAINER_DEFAULT
        values = _line_values(store, merged, capacity)
        others = _container_lines(store, order.id, line.container_index, exclude_line_id=line.id)
        if _load_into_container(capacity, line.container_index, others, SimpleNamespace(**values)):
            warnings.append(f"Container #{line.container_index + 1} is loaded over 80%")
    else:
        size = _flat_line_size(merged)
        values = _line_values(store, merged, size)
        values["container_size"] = size

    removed = store.allocations.delete_by(order_line_id=line.id)

    for key, value in values.items():
        setattr(line, key, value)
    store.session.flush()

    audit = log_action(
        store,
        ctx,
        line,
        AuditAction.UPDATE,
        {
            "orderNumber": order.order_number,
            "before": before,
            "after": serialize_model(line),
            "allocationsRemoved": removed,
        },
    )
    return CommandResult(line, audit, warnings=warnings)


@command
def delete_line(store, ctx: ActorContext, order_id, line_id) -> CommandResult:
    require_admin_mode(ctx, "delete order lines")
    order = _load_order(store, order_id)
    lifecycle.ensure_lines_mutable(order)
    line = _load_line(store, order, line_id)
    before = serialize_model(line)

    removed = store.allocations.delete_by(order_line_id=line.id)
    store.order_lines.delete(line)

    audit = log_action(
        store,
        ctx,
        line,
        AuditAction.DELETE,
        {"orderNumber": order.order_number, "line": before, "allocationsRemoved": removed},
    )
    return CommandResult(line, audit)


@command
def replace_line(store, ctx: ActorContext, order_id, line_id, entries_payload: Sequence[Dict[str, Any]]) -> CommandResult:
    """
    Split/replace one line with N replacement lines (possibly other items).

    - REPLACE: one entry with the same tons -> original rewritten in place
    - REPLACE_PARTIAL: one smaller entry -> original shrinks, one sibling added
    - REPLACE_MULTI: several entries -> original shrinks (or is deleted), siblings added
    All allocations of the original line are deleted in every branch.
    """
    order = _load_order(store, order_id)
    lifecycle.ensure_lines_mutable(order)
    line = _load_line(store, order, line_id)
    before = serialize_model(line)

    capacity = line.container_size or TONS_IN_CONTAINER_DEFAULT
    entries = []
    for idx, entry in enumerate(entries_payload or []):
        item_id = parse_optional_int(entry.get("item_id"))
        if item_id:
            store.items.get_or_raise(item_id)
        try:
            quantity = parse_positive_float(entry.get("quantity"), "quantity")
        except ValidationError as exc:
            raise ValidationError(exc.message, dict(exc.details, line=idx)) from None
        unit = parse_unit(entry.get("unit") or Unit.TON.value)
        entries.append(
            ledger.ReplacementEntry(
                item_id=item_id,
                quantity=quantity,
                unit=unit.value,
                quantity_in_tons=to_tons(quantity, unit, capacity),
            )
        )

    plan = ledger.plan_replacement(line.quantity_in_tons, entries)

    removed = store.allocations.delete_by(order_line_id=line.id)
    new_lines: List[OrderLine] = []

    if plan.rewrite_in_place:
        entry = plan.new_lines[0]
        line.item_id = entry.item_id
        line.quantity = entry.quantity
        line.unit = entry.unit
        line.quantity_in_tons = entry.quantity_in_tons
        store.session.flush()
    else:
        for entry in plan.new_lines:
            new_lines.append(
                store.order_lines.add(
                    OrderLine(
                        order_id=order.id,
                        item_id=entry.item_id,
                        quantity=entry.quantity,
                        unit=entry.unit,
                        quantity_in_tons=entry.quantity_in_tons,
                        container_size=line.container_size,
                        container_index=line.container_index,
                    )
                )
            )
        if plan.delete_original:
            store.order_lines.delete(line)
        else:
            line.quantity = plan.remainder_tons
            line.unit = Unit.TON.value
            line.quantity_in_tons = plan.remainder_tons
            store.session.flush()

    audit = log_action(
        store,
        ctx,
        line,
        plan.action,
        {
            "orderNumber": order.order_number,
            "original": before,
            "replacementTons": plan.replaced_tons,
            "remainderTons": plan.remainder_tons,
            "originalDeleted": plan.delete_original,
            "newLineIds": [l.id for l in new_lines],
            "allocationsRemoved": removed,
        },
    )
    return CommandResult(
        line,
        audit,
        extra={"plan": plan, "new_lines": new_lines, "original_deleted": plan.delete_original},
    )


# ---------------------------------------------------------------------
# Delete order (cascade)
# ---------------------------------------------------------------------
class DeletionSaga:
    """
    Ordered cascade for deleting an order.

    Steps run inside the caller's transaction. `completed` records the steps
    that finished, so a failure report names where the cascade stopped.
    """

    STEPS = ("order_lines", "allocations", "payments", "order")

    def __init__(self, store, order: Order):
        self.store = store
        self.order = order
        self.completed: List[str] = []
        self.counts: Dict[str, int] = {}
        self.failed_step: Optional[str] = None

    def run(self) -> Dict[str, int]:
        for step in self.STEPS:
            try:
                self.counts[step] = getattr(self, f"_delete_{step}")()
            except SQLAlchemyError as exc:
                self.failed_step = step
                logger.exception("Order %s deletion stopped at step %s", self.order.order_number, step)
                raise PersistenceError(
                    f"Deleting order {self.order.order_number} failed at step '{step}'",
                    {"failed_step": step, "completed_steps": list(self.completed)},
                ) from exc
            self.completed.append(step)
        return self.counts

    def _delete_allocations(self) -> int:
        return self.store.allocations.delete_by(order_id=self.order.id)

    def _delete_order_lines(self) -> int:
        return self.store.order_lines.delete_by(order_id=self.order.id)

    def _delete_payments(self) -> int:
        return self.store.payments.delete_by(order_id=self.order.id)

    def _delete_order(self) -> int:
        self.store.session.expire(self.order, ["lines"])
        self.store.orders.delete(self.order)
        return 1


@command
def delete_order(store, ctx: ActorContext, order_id) -> CommandResult:
    require_admin_mode(ctx, "delete orders")
    order = _load_order(store, order_id)

    saga = DeletionSaga(store, order)
    counts = saga.run()

    audit = log_action(store, ctx, order, AuditAction.DELETE, {"orderNumber": order.order_number})
    return CommandResult(order, audit, extra={"deleted": counts})
