"""
logistics/services/finance.py

Payment reconciliation per (supplier, currency) group of an order.

NOTE:
- Payments are append-only; there is no edit or reversal.
- A fixed amount above the remaining balance is accepted (overpayment is a
  warning, not an error). Percentage payments are capped at the remaining.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ..audit import log_action
from ..core import payments
from ..core.units import format_number
from ..errors import ValidationError
from ..models import AuditAction, Order, PaymentOperation, PaymentType
from ..security import ActorContext
from .base import (
    CommandResult,
    clean_text,
    command,
    parse_currency,
    parse_date,
    parse_decimal,
    parse_required_id,
)

logger = logging.getLogger(__name__)


@dataclass
class SupplierLedger:
    group: payments.SupplierGroup
    balance: payments.GroupBalance
    payments: List[PaymentOperation]


def supplier_ledgers(store, order: Order) -> List[SupplierLedger]:
    """Every (supplier, currency) group of the order with its balance and payment history."""
    allocations = store.allocations.list_by(order_id=order.id)
    order_payments = store.payments.list_by(order_id=order.id)

    ledgers = []
    for group in payments.group_by_supplier_and_currency(allocations):
        history = [
            p for p in order_payments
            if p.supplier_id == group.supplier_id and p.currency == group.currency
        ]
        ledgers.append(
            SupplierLedger(group=group, balance=payments.reconcile(group, history), payments=history)
        )
    return ledgers


def order_totals(ledgers: List[SupplierLedger]) -> Dict[str, Dict[str, Decimal]]:
    """Totals per currency: {"USD": {"total_sum", "paid", "remaining"}}."""
    totals: Dict[str, Dict[str, Decimal]] = {}
    for entry in ledgers:
        bucket = totals.setdefault(
            entry.group.currency,
            {"total_sum": Decimal("0.00"), "paid": Decimal("0.00"), "remaining": Decimal("0.00")},
        )
        bucket["total_sum"] += entry.balance.total_sum
        bucket["paid"] += entry.balance.paid
        bucket["remaining"] += entry.balance.remaining
    return totals


def _find_group(store, order: Order, supplier_id: int, currency: str) -> SupplierLedger:
    for entry in supplier_ledgers(store, order):
        if entry.group.key == (supplier_id, currency):
            return entry
    raise ValidationError(
        f"Order {order.order_number} has no {currency} allocations for supplier {supplier_id}",
        {"supplier_id": supplier_id, "currency": currency},
    )


def _parse_payment_type(value) -> str:
    try:
        return PaymentType(str(value or PaymentType.PREPAYMENT.value).strip().upper()).value
    except ValueError:
        raise ValidationError(f"Unknown payment type: {value!r}", {"field": "type"}) from None


def _resolve(store, order_id, payload: Dict[str, Any]) -> Tuple[Order, SupplierLedger]:
    order = store.orders.get_or_raise(order_id)
    supplier_id = parse_required_id(payload.get("supplier_id"), "supplier")
    store.suppliers.get_or_raise(supplier_id)
    currency = parse_currency(payload.get("currency"))
    return order, _find_group(store, order, supplier_id, currency)


def _record(store, ctx: ActorContext, order: Order, entry: SupplierLedger, amount: Decimal,
            payload: Dict[str, Any], details: Optional[Dict[str, Any]] = None) -> CommandResult:
    payment = store.payments.add(
        PaymentOperation(
            order_id=order.id,
            supplier_id=entry.group.supplier_id,
            type=_parse_payment_type(payload.get("type")),
            amount=payments.money(amount),
            currency=entry.group.currency,
            date=parse_date(payload.get("date")),
            comment=clean_text(payload.get("comment")),
            created_by=ctx.user_id,
        )
    )

    warnings = []
    if payments.money(amount) > entry.balance.remaining:
        warnings.append(
            f"Payment exceeds the remaining balance by "
            f"{payments.money(amount) - entry.balance.remaining} {entry.group.currency}"
        )

    audit_details = {
        "orderNumber": order.order_number,
        "supplierId": entry.group.supplier_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "type": payment.type,
    }
    audit_details.update(details or {})
    audit = log_action(store, ctx, payment, AuditAction.CREATE, audit_details)
    return CommandResult(payment, audit, warnings=warnings)


@command
def create_payment(store, ctx: ActorContext, order_id, payload: Dict[str, Any]) -> CommandResult:
    """Record a fixed-amount payment (amount > 0) for a supplier + currency group."""
    order, entry = _resolve(store, order_id, payload)
    amount = parse_decimal(payload.get("amount"), "amount", allow_zero=False)
    return _record(store, ctx, order, entry, amount, payload)


def preview_percentage(store, order_id, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Compute a percentage payment without recording it."""
    _, entry = _resolve(store, order_id, payload)
    base = str(payload.get("base") or payments.BASE_REMAINING).strip().lower()
    amount = payments.percentage_amount(entry.balance, payload.get("percent"), base=base)
    return {
        "amount": amount,
        "base": base,
        "percent": payments.to_decimal(payload.get("percent")),
        "balance": entry.balance,
    }


@command
def create_percentage_payment(store, ctx: ActorContext, order_id, payload: Dict[str, Any]) -> CommandResult:
    """
    Record a payment of `percent`% of the remaining (or total) balance.

    The computed amount is capped at the remaining balance.
    """
    order, entry = _resolve(store, order_id, payload)
    base = str(payload.get("base") or payments.BASE_REMAINING).strip().lower()
    amount = payments.percentage_amount(entry.balance, payload.get("percent"), base=base)

    logger.info(
        "Percentage payment %s%% of %s for %s: %s %s",
        format_number(float(payments.to_decimal(payload.get("percent")))),
        base,
        order.order_number,
        amount,
        entry.group.currency,
    )
    return _record(
        store,
        ctx,
        order,
        entry,
        amount,
        payload,
        {"percent": payments.to_decimal(payload.get("percent")), "base": base},
    )
