"""
logistics/core/lifecycle.py

Order lifecycle state machine.

    draft -> locked -> (distributed) -> financial -> completed

- New orders start as `locked` (draft is reserved).
- `locked` is the only status in which lines and allocations may change.
- locked -> financial requires every line fully distributed, unless the user
  confirms an override; the order is then flagged as partially distributed.
- financial -> completed is an administrative action outside this module.
- No transition moves an order backward.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

from ..errors import IncompleteDistributionError, OrderStateError


class OrderStatus(str, Enum):
    DRAFT = "draft"
    LOCKED = "locked"
    DISTRIBUTED = "distributed"
    FINANCIAL = "financial"
    COMPLETED = "completed"


INITIAL_STATUS = OrderStatus.LOCKED

TRANSITIONS = {
    OrderStatus.DRAFT: {OrderStatus.LOCKED},
    OrderStatus.LOCKED: {OrderStatus.DISTRIBUTED, OrderStatus.FINANCIAL},
    OrderStatus.DISTRIBUTED: {OrderStatus.FINANCIAL},
    OrderStatus.FINANCIAL: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
}

# Statuses listed on the distribution and finance screens.
DISTRIBUTION_STATUSES = (
    OrderStatus.LOCKED,
    OrderStatus.DISTRIBUTED,
    OrderStatus.FINANCIAL,
    OrderStatus.COMPLETED,
)
FINANCE_STATUSES = (OrderStatus.FINANCIAL, OrderStatus.COMPLETED)


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise OrderStateError(f"Unknown order status: {value!r}") from None


def can_transition(current, target) -> bool:
    return parse_status(target) in TRANSITIONS[parse_status(current)]


def ensure_transition(current, target) -> OrderStatus:
    target = parse_status(target)
    if not can_transition(current, target):
        raise OrderStateError(
            f"Order cannot move from '{parse_status(current).value}' to '{target.value}'",
            {"from": parse_status(current).value, "to": target.value},
        )
    return target


def lines_mutable(status) -> bool:
    return parse_status(status) is OrderStatus.LOCKED


def ensure_lines_mutable(order) -> None:
    """Reject line/allocation changes unless the order is locked."""
    if not lines_mutable(order.status):
        raise OrderStateError(
            f"Order {order.order_number} is '{parse_status(order.status).value}'; "
            "lines and allocations can only change while it is locked",
            {"order_id": order.id, "status": parse_status(order.status).value},
        )


@dataclass(frozen=True)
class DistributionOutcome:
    status: OrderStatus
    is_partially_distributed: bool


def complete_distribution(current_status, balances: Iterable, override: bool = False) -> DistributionOutcome:
    """
    Decide the locked -> financial transition.

    `balances` are LineBalance objects (one per order line). Without override,
    any line that is not fully distributed raises IncompleteDistributionError.
    """
    target = ensure_transition(current_status, OrderStatus.FINANCIAL)

    pending: List = [b for b in balances if not b.is_fully_distributed]
    if pending and not override:
        raise IncompleteDistributionError(
            "Not all order lines are fully distributed; confirm to continue with a partial distribution",
            {"undistributed_lines": len(pending)},
        )

    return DistributionOutcome(status=target, is_partially_distributed=bool(pending))
