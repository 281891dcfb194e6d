import pytest

from logistics.core import lifecycle
from logistics.core.ledger import LineBalance
from logistics.core.lifecycle import OrderStatus
from logistics.errors import IncompleteDistributionError, OrderStateError

FULL = LineBalance(100, 100, 0, True)
PARTIAL = LineBalance(100, 60, 40, False)


def test_forward_transitions():
    assert lifecycle.can_transition("draft", "locked")
    assert lifecycle.can_transition("locked", "financial")
    assert lifecycle.can_transition("locked", "distributed")
    assert lifecycle.can_transition("distributed", "financial")
    assert lifecycle.can_transition("financial", "completed")


@pytest.mark.parametrize(
    "current, target",
    [("financial", "locked"), ("completed", "financial"), ("locked", "draft"), ("draft", "financial")],
)
def test_no_backward_or_skipping_transitions(current, target):
    with pytest.raises(OrderStateError):
        lifecycle.ensure_transition(current, target)


def test_unknown_status():
    with pytest.raises(OrderStateError):
        lifecycle.parse_status("archived")


def test_lines_mutable_only_when_locked():
    assert lifecycle.lines_mutable("locked")
    for status in ("draft", "distributed", "financial", "completed"):
        assert not lifecycle.lines_mutable(status)


def test_complete_distribution_when_fully_distributed():
    outcome = lifecycle.complete_distribution("locked", [FULL, FULL])
    assert outcome.status is OrderStatus.FINANCIAL
    assert not outcome.is_partially_distributed


def test_complete_distribution_needs_override():
    with pytest.raises(IncompleteDistributionError):
        lifecycle.complete_distribution("locked", [FULL, PARTIAL])

    outcome = lifecycle.complete_distribution("locked", [FULL, PARTIAL], override=True)
    assert outcome.status is OrderStatus.FINANCIAL
    assert outcome.is_partially_distributed


def test_complete_distribution_twice_is_rejected():
    with pytest.raises(OrderStateError):
        lifecycle.complete_distribution("financial", [FULL])
