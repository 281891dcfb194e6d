"""
logistics/core/ledger.py

Distribution ledger: how much of an order line is allocated to suppliers.

Works on any objects exposing:
- allocations: quantity_in_tons, order_line_id
- order lines: id, quantity_in_tons

Key rules:
- allocated = sum of allocation tons for the line
- remainder = ordered - allocated (negative only if the guard was bypassed)
- fully distributed <=> |remainder| < TONS_TOLERANCE
- a new allocation is accepted <=> allocated + new <= ordered + TONS_TOLERANCE

Replacement planning (splitting a line into N replacement lines) lives here as
well; the service layer executes the plan against the store.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from ..errors import OverAllocationError, ValidationError
from .units import TONS_TOLERANCE, format_number, tons_equal


@dataclass(frozen=True)
class LineBalance:
    ordered_tons: float
    allocated_tons: float
    remainder_tons: float
    is_fully_distributed: bool

    def to_dict(self) -> dict:
        return {
            "ordered_tons": self.ordered_tons,
            "allocated_tons": self.allocated_tons,
            "remainder_tons": self.remainder_tons,
            "is_fully_distributed": self.is_fully_distributed,
        }


def _line_allocations(allocations: Iterable, order_line_id=None) -> list:
    if order_line_id is None:
        return list(allocations)
    return [a for a in allocations if a.order_line_id == order_line_id]


def allocated_tons(allocations: Iterable, order_line_id=None) -> float:
    return sum(float(a.quantity_in_tons) for a in _line_allocations(allocations, order_line_id))


def reconcile(ordered_tons: float, allocations: Iterable, order_line_id=None) -> LineBalance:
    """
    Reconcile one order line against its allocations.

    If order_line_id is given, allocations of other lines are ignored, so the
    full order's allocation list can be passed in.
    """
    ordered = float(ordered_tons)
    allocated = allocated_tons(allocations, order_line_id)
    remainder = ordered - allocated
    return LineBalance(
        ordered_tons=ordered,
        allocated_tons=allocated,
        remainder_tons=remainder,
        is_fully_distributed=abs(remainder) < TONS_TOLERANCE,
    )


def line_balance(line, allocations: Iterable) -> LineBalance:
    return reconcile(line.quantity_in_tons, allocations, order_line_id=line.id)


def can_accept(ordered_tons: float, existing_allocations: Iterable, new_tons: float) -> bool:
    return allocated_tons(existing_allocations) + new_tons <= float(ordered_tons) + TONS_TOLERANCE


def ensure_can_accept(ordered_tons: float, existing_allocations: Iterable, new_tons: float) -> None:
    """Raise OverAllocationError if new_tons does not fit in the line's remainder."""
    existing = list(existing_allocations)
    if can_accept(ordered_tons, existing, new_tons):
        return
    balance = reconcile(ordered_tons, existing)
    raise OverAllocationError(
        f"Cannot allocate {format_number(new_tons)} t: "
        f"only {format_number(max(balance.remainder_tons, 0.0))} t left to distribute",
        {
            "ordered_tons": balance.ordered_tons,
            "allocated_tons": balance.allocated_tons,
            "remainder_tons": balance.remainder_tons,
            "requested_tons": new_tons,
        },
    )


# ---------------------------------------------------------------------
# Line replacement
# ---------------------------------------------------------------------
REPLACE = "REPLACE"
REPLACE_PARTIAL = "REPLACE_PARTIAL"
REPLACE_MULTI = "REPLACE_MULTI"


@dataclass(frozen=True)
class ReplacementEntry:
    item_id: Optional[int]
    quantity: float
    unit: str
    quantity_in_tons: float


@dataclass
class ReplacementPlan:
    """
    Outcome of plan_replacement().

    action:
        REPLACE          rewrite the original line in place (1:1, same tons)
        REPLACE_PARTIAL  one smaller entry; original shrinks to the remainder
        REPLACE_MULTI    several entries; original shrinks (or is deleted)
    """

    action: str
    original_tons: float
    replaced_tons: float
    remainder_tons: float
    rewrite_in_place: bool
    delete_original: bool
    new_lines: List[ReplacementEntry] = field(default_factory=list)


def plan_replacement(original_tons: float, entries: Sequence[ReplacementEntry]) -> ReplacementPlan:
    """
    Validate replacement entries against the original line and choose a branch.

    Raises:
        ValidationError: no entries, missing item, non-positive or non-finite quantity.
        OverAllocationError: entries exceed the original line beyond tolerance.
    """
    if not entries:
        raise ValidationError("At least one replacement line is required")

    for idx, entry in enumerate(entries):
        if not entry.item_id:
            raise ValidationError("Each replacement line needs an item", {"line": idx})
        quantity_ok = (
            entry.quantity is not None
            and math.isfinite(entry.quantity_in_tons)
            and entry.quantity > 0
            and entry.quantity_in_tons > 0
        )
        if not quantity_ok:
            raise ValidationError("Each replacement line needs a positive quantity", {"line": idx})

    original = float(original_tons)
    replaced = sum(e.quantity_in_tons for e in entries)
    if replaced > original + TONS_TOLERANCE:
        raise OverAllocationError(
            f"Replacement total {format_number(replaced)} t exceeds the line quantity "
            f"{format_number(original)} t",
            {"original_tons": original, "replacement_tons": replaced},
        )

    remainder = original - replaced

    if len(entries) == 1 and tons_equal(replaced, original):
        return ReplacementPlan(
            action=REPLACE,
            original_tons=original,
            replaced_tons=replaced,
            remainder_tons=0.0,
            rewrite_in_place=True,
            delete_original=False,
            new_lines=[entries[0]],
        )

    return ReplacementPlan(
        action=REPLACE_PARTIAL if len(entries) == 1 else REPLACE_MULTI,
        original_tons=original,
        replaced_tons=replaced,
        remainder_tons=max(remainder, 0.0),
        rewrite_in_place=False,
        delete_original=remainder < TONS_TOLERANCE,
        new_lines=list(entries),
    )
