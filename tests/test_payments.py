from decimal import Decimal
from types import SimpleNamespace

import pytest

from logistics.core import payments
from logistics.errors import ValidationError


def alloc(supplier_id, total, currency="USD"):
    return SimpleNamespace(supplier_id=supplier_id, total_sum=Decimal(total), currency=currency)


def pay(supplier_id, amount, currency="USD"):
    return SimpleNamespace(supplier_id=supplier_id, amount=Decimal(amount), currency=currency)


def test_allocation_total_rounds_half_up():
    assert payments.allocation_total(60, 50) == Decimal("3000.00")
    assert payments.allocation_total(0.333, Decimal("10.05")) == Decimal("3.35")


def test_grouping_by_supplier_and_currency():
    groups = payments.group_by_supplier_and_currency(
        [alloc(1, "3000"), alloc(1, "500"), alloc(1, "100", "UZS"), alloc(2, "2200")]
    )
    totals = {g.key: g.total_sum for g in groups}
    assert totals == {
        (1, "USD"): Decimal("3500.00"),
        (1, "UZS"): Decimal("100.00"),
        (2, "USD"): Decimal("2200.00"),
    }


def test_reconcile_matches_supplier_and_currency():
    group = payments.group_by_supplier_and_currency([alloc(1, "3000")])[0]
    balance = payments.reconcile(group, [pay(1, "1000"), pay(2, "500"), pay(1, "700", "UZS")])
    assert balance.paid == Decimal("1000.00")
    assert balance.remaining == Decimal("2000.00")
    assert balance.status == payments.STATUS_PARTIAL


@pytest.mark.parametrize(
    "paid, status",
    [("0", "unpaid"), ("1", "partial"), ("3000", "paid"), ("3500", "paid")],
)
def test_payment_status(paid, status):
    assert payments.payment_status(Decimal("3000"), Decimal(paid)) == status


def test_overpayment_gives_negative_remaining():
    group = payments.group_by_supplier_and_currency([alloc(1, "100")])[0]
    balance = payments.reconcile(group, [pay(1, "150")])
    assert balance.remaining == Decimal("-50.00")
    assert balance.status == payments.STATUS_PAID


def test_percentage_scenario():
    group = payments.group_by_supplier_and_currency([alloc(1, "3000")])[0]
    history = [pay(1, "1000")]

    balance = payments.reconcile(group, history)
    amount = payments.percentage_amount(balance, 50)
    assert amount == Decimal("1000.00")
    history.append(pay(1, amount))
    assert payments.reconcile(group, history).status == payments.STATUS_PARTIAL

    balance = payments.reconcile(group, history)
    amount = payments.percentage_amount(balance, 100)
    assert amount == Decimal("1000.00")
    history.append(pay(1, amount))
    assert payments.reconcile(group, history).status == payments.STATUS_PAID


def test_percentage_of_total_is_capped_at_remaining():
    group = payments.group_by_supplier_and_currency([alloc(1, "3000")])[0]
    balance = payments.reconcile(group, [pay(1, "2500")])
    assert payments.percentage_amount(balance, 50, base=payments.BASE_TOTAL) == Decimal("500.00")


@pytest.mark.parametrize("percent", [0, "0.001", 100.5, -5, "NaN", "Infinity", "-Infinity"])
def test_percentage_out_of_range(percent):
    balance = payments.GroupBalance(Decimal("100"), Decimal("0"), Decimal("100"), "unpaid")
    with pytest.raises(ValidationError):
        payments.percentage_amount(balance, percent)


def test_percentage_with_nothing_left():
    balance = payments.GroupBalance(Decimal("100"), Decimal("100"), Decimal("0"), "paid")
    with pytest.raises(ValidationError):
        payments.percentage_amount(balance, 10)


def test_undistributed_summary():
    lines = [
        SimpleNamespace(id=1, item_id=10, quantity_in_tons=100),
        SimpleNamespace(id=2, item_id=11, quantity_in_tons=50),
    ]
    allocations = [
        SimpleNamespace(order_line_id=1, quantity_in_tons=60),
        SimpleNamespace(order_line_id=2, quantity_in_tons=50),
    ]
    summary = payments.undistributed_summary(lines, allocations)
    assert summary.has_undistributed
    assert summary.total_ordered == 150
    assert summary.total_allocated == 110
    assert summary.total_remaining == 40
    assert [l.order_line_id for l in summary.lines] == [1]
