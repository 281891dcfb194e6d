"""
logistics/core/packing.py

Container packing: order lines grouped into fixed-capacity containers.

Rules:
- Loading is strict: current_load + item > capacity is rejected (no tolerance).
- Crossing 80% of capacity emits a single advisory warning (non-blocking).
- Utilization bands: green < 80 <= yellow <= 100 < red.

Order layouts are a tagged union:
- LegacyFlatOrder       no line carries a container_index (pre-container orders)
- ContainerPackedOrder  lines are replayed into their original containers
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, List, Sequence, Tuple, Union

from ..errors import ContainerOverloadError, ValidationError
from .units import TONS_IN_CONTAINER_DEFAULT, TONS_IN_CONTAINER_EXCEPTION, format_number

WARNING_THRESHOLD_PERCENT = 80.0

BAND_GREEN = "green"
BAND_YELLOW = "yellow"
BAND_RED = "red"


@dataclass(frozen=True)
class Container:
    capacity: float
    index: int = 0
    items: Tuple = field(default_factory=tuple)

    @property
    def current_load(self) -> float:
        return sum(float(i.quantity_in_tons) for i in self.items)

    @property
    def utilization(self) -> float:
        return utilization(self.current_load, self.capacity)

    @property
    def band(self) -> str:
        return utilization_band(self.utilization)

    def to_dict(self, serialize_item=None) -> dict:
        items = [serialize_item(i) for i in self.items] if serialize_item else list(self.items)
        return {
            "index": self.index,
            "capacity": self.capacity,
            "current_load": self.current_load,
            "utilization": round(self.utilization, 1),
            "band": self.band,
            "items": items,
        }


@dataclass(frozen=True)
class LoadResult:
    container: Container
    accepted: bool
    warning_threshold_80: bool


def pack(capacity: float = TONS_IN_CONTAINER_DEFAULT, index: int = 0) -> Container:
    """Create an empty container."""
    if capacity is None or capacity <= 0:
        raise ValidationError("Container capacity must be positive", {"capacity": capacity})
    return Container(capacity=float(capacity), index=index)


def utilization(load: float, capacity: float) -> float:
    return load / capacity * 100


def utilization_band(percent: float) -> str:
    if percent > 100:
        return BAND_RED
    if percent >= WARNING_THRESHOLD_PERCENT:
        return BAND_YELLOW
    return BAND_GREEN


def load(container: Container, item) -> LoadResult:
    """
    Add an item (anything with quantity_in_tons) to a container.

    Returns a new Container; the input container is left untouched.

    Raises:
        ContainerOverloadError: if the item would exceed capacity.
    """
    before = container.current_load
    after = before + float(item.quantity_in_tons)

    if after > container.capacity:
        raise ContainerOverloadError(
            f"Container #{container.index + 1} ({format_number(container.capacity)} t) "
            f"cannot take {format_number(item.quantity_in_tons)} t: "
            f"{format_number(container.capacity - before)} t free",
            {
                "container_index": container.index,
                "capacity": container.capacity,
                "current_load": before,
                "requested_tons": float(item.quantity_in_tons),
            },
        )

    crossed = (
        utilization(before, container.capacity) < WARNING_THRESHOLD_PERCENT
        and utilization(after, container.capacity) >= WARNING_THRESHOLD_PERCENT
    )
    new_container = replace(container, items=container.items + (item,))
    return LoadResult(container=new_container, accepted=True, warning_threshold_80=crossed)


def pack_lines(groups: Sequence[Tuple[float, Sequence]]) -> Tuple[List[Container], List[str]]:
    """
    Pack [(capacity, [lines...]), ...] into containers indexed 0..N-1.

    Returns (containers, warnings). The first overload aborts packing.
    """
    containers: List[Container] = []
    warnings: List[str] = []
    for index, (capacity, lines) in enumerate(groups):
        container = pack(capacity, index=index)
        for line in lines:
            result = load(container, line)
            container = result.container
            if result.warning_threshold_80:
                warnings.append(
                    f"Container #{index + 1} is loaded over {int(WARNING_THRESHOLD_PERCENT)}% "
                    f"({container.utilization:.1f}%)"
                )
        containers.append(container)
    return containers, warnings


# ---------------------------------------------------------------------
# Order layouts
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PackingSummary:
    container_count: int
    total_weight: float
    count_26t: int
    count_27t: int
    average_utilization: float

    def to_dict(self) -> dict:
        return {
            "container_count": self.container_count,
            "total_weight": self.total_weight,
            "count_26t": self.count_26t,
            "count_27t": self.count_27t,
            "average_utilization": round(self.average_utilization, 1),
        }


@dataclass(frozen=True)
class LegacyFlatOrder:
    lines: Tuple
    total_weight: float

    kind = "flat"


@dataclass(frozen=True)
class ContainerPackedOrder:
    containers: Tuple[Container, ...]
    summary: PackingSummary

    kind = "containers"


OrderLayout = Union[LegacyFlatOrder, ContainerPackedOrder]


def summarize(containers: Iterable[Container]) -> PackingSummary:
    """Order-level aggregates. Average utilization is weighted by capacity."""
    containers = list(containers)
    total_weight = sum(c.current_load for c in containers)
    total_capacity = sum(c.capacity for c in containers)
    return PackingSummary(
        container_count=len(containers),
        total_weight=total_weight,
        count_26t=sum(1 for c in containers if c.capacity == TONS_IN_CONTAINER_DEFAULT),
        count_27t=sum(1 for c in containers if c.capacity == TONS_IN_CONTAINER_EXCEPTION),
        average_utilization=utilization(total_weight, total_capacity) if total_capacity else 0.0,
    )


def group_into_containers(lines: Iterable) -> List[Container]:
    """
    Replay lines into their containers by container_index.

    Lines without an index fall into container 0. Capacity comes from the
    first line of each group (default 26 t). Grouping does not re-validate
    loads: stored orders are displayed as they are.
    """
    grouped = {}
    for line in lines:
        index = line.container_index if line.container_index is not None else 0
        grouped.setdefault(index, []).append(line)

    containers = []
    for index in sorted(grouped):
        group = grouped[index]
        capacity = group[0].container_size or TONS_IN_CONTAINER_DEFAULT
        containers.append(Container(capacity=float(capacity), index=index, items=tuple(group)))
    return containers


def layout_order(lines: Iterable) -> OrderLayout:
    lines = list(lines)
    if any(line.container_index is not None for line in lines):
        containers = group_into_containers(lines)
        return ContainerPackedOrder(containers=tuple(containers), summary=summarize(containers))
    return LegacyFlatOrder(
        lines=tuple(lines),
        total_weight=sum(float(line.quantity_in_tons) for line in lines),
    )
