"""
logistics/core/payments.py

Payment reconciliation per (supplier, currency) group.

Money is handled as Decimal and quantized to cents (ROUND_HALF_UP), the same
way every monetary column is stored.

Rules:
- total = sum of allocation total_sum in the group
- paid = sum of payment amounts for the same supplier + currency
- remaining = total - paid (negative when overpaid; never blocked)
- status: unpaid (paid == 0) | partial (paid < total) | paid

Percentage entry is capped at `remaining`. Fixed-amount entry is not capped
here: overpayment only produces a warning in the service layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, List

from ..errors import ValidationError
from .ledger import line_balance
from .units import TONS_TOLERANCE

QUICK_PERCENTAGES = (10, 20, 25, 30, 50, 70, 100)

PERCENT_MIN = Decimal("0.01")
PERCENT_MAX = Decimal("100")

BASE_REMAINING = "remaining"
BASE_TOTAL = "total"

STATUS_UNPAID = "unpaid"
STATUS_PARTIAL = "partial"
STATUS_PAID = "paid"


def to_decimal(value) -> Decimal:
    """Convert Numeric/float/None to Decimal safely."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Not a number: {value!r}") from None


def money(x) -> Decimal:
    return to_decimal(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def allocation_total(quantity_in_tons: float, price_per_ton) -> Decimal:
    """total_sum = quantity_in_tons * price_per_ton, in cents."""
    return money(to_decimal(quantity_in_tons) * to_decimal(price_per_ton))


@dataclass
class SupplierGroup:
    supplier_id: int
    currency: str
    allocations: List = field(default_factory=list)
    total_sum: Decimal = Decimal("0.00")

    @property
    def key(self):
        return (self.supplier_id, self.currency)


@dataclass(frozen=True)
class GroupBalance:
    total_sum: Decimal
    paid: Decimal
    remaining: Decimal
    status: str

    def to_dict(self) -> dict:
        return {
            "total_sum": self.total_sum,
            "paid": self.paid,
            "remaining": self.remaining,
            "status": self.status,
        }


def group_by_supplier_and_currency(allocations: Iterable) -> List[SupplierGroup]:
    groups = {}
    for alloc in allocations:
        key = (alloc.supplier_id, _currency(alloc.currency))
        group = groups.get(key)
        if group is None:
            group = groups[key] = SupplierGroup(supplier_id=key[0], currency=key[1])
        group.allocations.append(alloc)
        group.total_sum = money(group.total_sum + to_decimal(alloc.total_sum))
    return list(groups.values())


def payment_status(total_sum, paid) -> str:
    total_sum, paid = to_decimal(total_sum), to_decimal(paid)
    if paid == 0:
        return STATUS_UNPAID
    if paid < total_sum:
        return STATUS_PARTIAL
    return STATUS_PAID


def reconcile(group: SupplierGroup, payments: Iterable) -> GroupBalance:
    """Net the group's payments (matching supplier + currency) off its total."""
    paid = money(
        sum(
            (to_decimal(p.amount) for p in payments
             if p.supplier_id == group.supplier_id and _currency(p.currency) == group.currency),
            Decimal("0.00"),
        )
    )
    total = money(group.total_sum)
    return GroupBalance(
        total_sum=total,
        paid=paid,
        remaining=money(total - paid),
        status=payment_status(total, paid),
    )


def percentage_amount(balance: GroupBalance, percent, base: str = BASE_REMAINING) -> Decimal:
    """
    Amount for a percentage-based payment.

    amount = base * percent / 100, capped at the remaining balance.

    Raises:
        ValidationError: percent outside [0.01, 100], unknown base, or nothing left to pay.
    """
    pct = to_decimal(percent)
    if not pct.is_finite() or pct < PERCENT_MIN or pct > PERCENT_MAX:
        raise ValidationError("Percentage must be between 0.01 and 100", {"percent": str(percent)})

    if base == BASE_REMAINING:
        base_amount = balance.remaining
    elif base == BASE_TOTAL:
        base_amount = balance.total_sum
    else:
        raise ValidationError(f"Unknown calculation base: {base!r}", {"base": base})

    if balance.remaining <= 0:
        raise ValidationError("Nothing left to pay for this supplier", balance.to_dict())

    amount = money(base_amount * pct / Decimal("100"))
    return min(amount, balance.remaining)


def _currency(value) -> str:
    return getattr(value, "value", value)


# ---------------------------------------------------------------------
# Undistributed summary (finance warning)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class LineRemainder:
    order_line_id: int
    item_id: int
    ordered_tons: float
    allocated_tons: float
    remaining_tons: float

    def to_dict(self) -> dict:
        return {
            "order_line_id": self.order_line_id,
            "item_id": self.item_id,
            "ordered_tons": self.ordered_tons,
            "allocated_tons": self.allocated_tons,
            "remaining_tons": self.remaining_tons,
        }


@dataclass(frozen=True)
class UndistributedSummary:
    total_ordered: float
    total_allocated: float
    total_remaining: float
    lines: List[LineRemainder]

    @property
    def has_undistributed(self) -> bool:
        return bool(self.lines)

    def to_dict(self) -> dict:
        return {
            "total_ordered": self.total_ordered,
            "total_allocated": self.total_allocated,
            "total_remaining": self.total_remaining,
            "lines": [line.to_dict() for line in self.lines],
        }


def undistributed_summary(lines: Iterable, allocations: Iterable) -> UndistributedSummary:
    allocations = list(allocations)
    total_ordered = 0.0
    total_allocated = 0.0
    pending = []
    for line in lines:
        balance = line_balance(line, allocations)
        total_ordered += balance.ordered_tons
        total_allocated += balance.allocated_tons
        if balance.remainder_tons > TONS_TOLERANCE:
            pending.append(
                LineRemainder(
                    order_line_id=line.id,
                    item_id=line.item_id,
                    ordered_tons=balance.ordered_tons,
                    allocated_tons=balance.allocated_tons,
                    remaining_tons=balance.remainder_tons,
                )
            )
    return UndistributedSummary(
        total_ordered=total_ordered,
        total_allocated=total_allocated,
        total_remaining=total_ordered - total_allocated,
        lines=pending,
    )
