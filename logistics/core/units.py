"""
logistics/core/units.py

Unit conversion between tons, kilograms and containers.

Every downstream calculation (ledger, packing, payments) works on tons.
Quantities are converted once, when entered, and stored next to the
original quantity/unit pair.

IMPORTANT:
- TONS_TOLERANCE is the single epsilon used by every reconciliation and
  boundary check. Do not compare tons with a literal anywhere else.
- Sign checks are the caller's job; these helpers never reject input values.
"""

from __future__ import annotations

from enum import Enum

from ..errors import ValidationError

TONS_IN_CONTAINER_DEFAULT = 26
TONS_IN_CONTAINER_EXCEPTION = 27
CONTAINER_CAPACITIES = (TONS_IN_CONTAINER_DEFAULT, TONS_IN_CONTAINER_EXCEPTION)

KG_IN_TON = 1000

TONS_TOLERANCE = 0.001


class Unit(str, Enum):
    TON = "ton"
    KILOGRAM = "kg"
    CONTAINER = "container"


# Legacy labels (т / кг / конт.) are accepted alongside the canonical values.
_UNIT_ALIASES = {
    "ton": Unit.TON,
    "tons": Unit.TON,
    "t": Unit.TON,
    "т": Unit.TON,
    "kg": Unit.KILOGRAM,
    "kilogram": Unit.KILOGRAM,
    "kilograms": Unit.KILOGRAM,
    "кг": Unit.KILOGRAM,
    "container": Unit.CONTAINER,
    "containers": Unit.CONTAINER,
    "cont": Unit.CONTAINER,
    "конт.": Unit.CONTAINER,
    "конт": Unit.CONTAINER,
}


def parse_unit(value) -> Unit:
    """Normalize a unit label. Unknown labels are a ValidationError."""
    if isinstance(value, Unit):
        return value
    key = str(value or "").strip().lower()
    try:
        return _UNIT_ALIASES[key]
    except KeyError:
        raise ValidationError(f"Unknown unit: {value!r}", {"unit": value}) from None


def to_tons(quantity: float, unit, container_capacity: float = TONS_IN_CONTAINER_DEFAULT) -> float:
    """Convert a quantity in any unit to tons."""
    unit = parse_unit(unit)
    if unit is Unit.TON:
        return float(quantity)
    if unit is Unit.KILOGRAM:
        return quantity / KG_IN_TON
    return quantity * container_capacity


def to_containers(tons: float, container_capacity: float = TONS_IN_CONTAINER_DEFAULT) -> float:
    return tons / container_capacity


def to_kg(tons: float) -> float:
    return tons * KG_IN_TON


def tons_equal(a: float, b: float) -> bool:
    """True when two ton quantities are equal within TONS_TOLERANCE."""
    return abs(a - b) < TONS_TOLERANCE


def format_number(value: float) -> str:
    """Up to three decimals, trailing zeros removed (26.500 -> '26.5')."""
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text
