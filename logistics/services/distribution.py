"""
logistics/services/distribution.py

Distribution of order lines to suppliers.

Rules:
- Allocations are created only while the order is locked.
- The ledger guard (allocated + new <= ordered + tolerance) runs on every create.
- Allocation deletion is not status-gated: it is the correction path after a
  mistaken allocation.
- Completing distribution moves the order to `financial`; a partially
  distributed order needs an explicit override and is flagged.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..audit import log_action, serialize_model
from ..core import ledger, lifecycle, payments
from ..core.units import TONS_IN_CONTAINER_DEFAULT, Unit, parse_unit, to_tons
from ..errors import IncompleteDistributionError, ValidationError
from ..models import Allocation, AuditAction, Order
from ..security import ActorContext
from .base import (
    CommandResult,
    command,
    parse_currency,
    parse_decimal,
    parse_positive_float,
    parse_required_id,
)
from .orders import parse_container_size

logger = logging.getLogger(__name__)


def line_balances(store, order: Order) -> List[Dict[str, Any]]:
    """Per-line ledger view: [{"line": OrderLine, "balance": LineBalance, "allocations": [...]}]."""
    allocations = store.allocations.list_by(order_id=order.id)
    rows = []
    for line in store.order_lines.list_by(order_id=order.id):
        rows.append(
            {
                "line": line,
                "balance": ledger.line_balance(line, allocations),
                "allocations": [a for a in allocations if a.order_line_id == line.id],
            }
        )
    return rows


@command
def create_allocation(store, ctx: ActorContext, order_id, payload: Dict[str, Any]) -> CommandResult:
    """
    Allocate part of an order line to a supplier.

    Payload: order_line_id, supplier_id, quantity, unit, price_per_ton,
    currency, container_size (when unit is container).
    """
    order = store.orders.get_or_raise(order_id)
    lifecycle.ensure_lines_mutable(order)

    line = store.order_lines.get_or_raise(parse_required_id(payload.get("order_line_id"), "order line"))
    if line.order_id != order.id:
        raise ValidationError(
            f"Line {line.id} does not belong to order {order.order_number}",
            {"order_id": order.id, "order_line_id": line.id},
        )

    supplier = store.suppliers.get_or_raise(parse_required_id(payload.get("supplier_id"), "supplier"))

    quantity = parse_positive_float(payload.get("quantity"), "quantity")
    unit = parse_unit(payload.get("unit") or Unit.TON.value)
    price = parse_decimal(payload.get("price_per_ton"), "price_per_ton")
    currency = parse_currency(payload.get("currency"))

    container_size = None
    if unit is Unit.CONTAINER:
        container_size = parse_container_size(
            payload.get("container_size"),
            default=line.container_size or TONS_IN_CONTAINER_DEFAULT,
        )
    tons = to_tons(quantity, unit, container_size or TONS_IN_CONTAINER_DEFAULT)

    ledger.ensure_can_accept(
        line.quantity_in_tons,
        store.allocations.list_by(order_line_id=line.id),
        tons,
    )

    allocation = store.allocations.add(
        Allocation(
            order_id=order.id,
            order_line_id=line.id,
            supplier_id=supplier.id,
            item_id=line.item_id,
            quantity=quantity,
            unit=unit.value,
            quantity_in_tons=tons,
            price_per_ton=payments.money(price),
            total_sum=payments.allocation_total(tons, price),
            currency=currency,
            container_size=container_size,
        )
    )

    audit = log_action(
        store,
        ctx,
        allocation,
        AuditAction.CREATE,
        {
            "orderNumber": order.order_number,
            "itemId": line.item_id,
            "supplierId": supplier.id,
            "quantityInTons": tons,
            "totalSum": allocation.total_sum,
            "currency": currency,
        },
    )
    return CommandResult(allocation, audit)


@command
def delete_allocation(store, ctx: ActorContext, order_id, allocation_id) -> CommandResult:
    order = store.orders.get_or_raise(order_id)
    allocation = store.allocations.get_or_raise(allocation_id)
    if allocation.order_id != order.id:
        raise ValidationError(
            f"Allocation {allocation_id} does not belong to order {order.order_number}",
            {"order_id": order.id, "allocation_id": allocation_id},
        )

    before = serialize_model(allocation)
    store.allocations.delete(allocation)

    audit = log_action(
        store,
        ctx,
        allocation,
        AuditAction.DELETE,
        {"orderNumber": order.order_number, "allocation": before},
    )
    return CommandResult(allocation, audit)


@command
def complete_distribution(store, ctx: ActorContext, order_id, override: bool = False) -> CommandResult:
    """
    locked -> financial.

    Raises IncompleteDistributionError (with the undistributed summary in
    details) when lines are pending and override is not set.
    """
    order = store.orders.get_or_raise(order_id)
    lines = store.order_lines.list_by(order_id=order.id)
    allocations = store.allocations.list_by(order_id=order.id)

    summary = payments.undistributed_summary(lines, allocations)
    balances = [ledger.line_balance(line, allocations) for line in lines]

    try:
        outcome = lifecycle.complete_distribution(order.status, balances, override=override)
    except IncompleteDistributionError as exc:
        exc.details.update(summary.to_dict())
        raise

    order.status = outcome.status.value
    order.is_partially_distributed = outcome.is_partially_distributed
    store.session.flush()

    warnings = []
    if outcome.is_partially_distributed:
        warnings.append(
            f"Order {order.order_number} moved to finance with "
            f"{len(summary.lines)} partially distributed line(s)"
        )
        logger.warning(warnings[-1])

    audit = log_action(
        store,
        ctx,
        order,
        AuditAction.UPDATE,
        {
            "status": order.status,
            "orderNumber": order.order_number,
            "isPartiallyDistributed": order.is_partially_distributed,
        },
    )
    return CommandResult(order, audit, warnings=warnings, extra={"undistributed": summary})
