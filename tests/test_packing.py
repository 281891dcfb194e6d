from types import SimpleNamespace

import pytest

from logistics.core import packing
from logistics.errors import ContainerOverloadError, ValidationError


def item(tons):
    return SimpleNamespace(quantity_in_tons=tons)


def line(tons, index=None, size=None):
    return SimpleNamespace(quantity_in_tons=tons, container_index=index, container_size=size)


def test_container_scenario():
    container = packing.pack(26)

    first = packing.load(container, item(20))
    assert first.container.utilization == pytest.approx(76.92, abs=0.01)
    assert not first.warning_threshold_80

    second = packing.load(first.container, item(5))
    assert second.container.current_load == 25
    assert second.container.utilization == pytest.approx(96.15, abs=0.01)
    assert second.warning_threshold_80

    with pytest.raises(ContainerOverloadError):
        packing.load(second.container, item(2))


def test_load_does_not_mutate_input():
    container = packing.pack(26)
    packing.load(container, item(10))
    assert container.current_load == 0


def test_exact_capacity_fits_and_one_kilo_more_fails():
    assert packing.load(packing.pack(26), item(26)).accepted
    with pytest.raises(ContainerOverloadError):
        packing.load(packing.pack(26), item(26.001))


def test_warning_only_when_crossing_threshold():
    result = packing.load(packing.pack(26), item(22))
    assert result.warning_threshold_80
    again = packing.load(result.container, item(1))
    assert not again.warning_threshold_80


def test_invalid_capacity():
    with pytest.raises(ValidationError):
        packing.pack(0)


@pytest.mark.parametrize(
    "percent, band",
    [(50, "green"), (79.9, "green"), (80, "yellow"), (100, "yellow"), (100.1, "red")],
)
def test_utilization_band(percent, band):
    assert packing.utilization_band(percent) == band


def test_pack_lines_collects_warnings():
    containers, warnings = packing.pack_lines([(26, [item(10), item(12)]), (27, [item(5)])])
    assert [c.index for c in containers] == [0, 1]
    assert [c.capacity for c in containers] == [26, 27]
    assert len(warnings) == 1
    assert "Container #1" in warnings[0]


def test_layout_flat_order():
    layout = packing.layout_order([line(10), line(5.5)])
    assert isinstance(layout, packing.LegacyFlatOrder)
    assert layout.kind == "flat"
    assert layout.total_weight == 15.5


def test_layout_container_order_and_summary():
    lines = [line(20, 1, 27), line(13, 0, 26), line(13, 0, 26), line(7, 1, 27)]
    layout = packing.layout_order(lines)
    assert isinstance(layout, packing.ContainerPackedOrder)

    first, second = layout.containers
    assert (first.index, first.capacity, first.current_load) == (0, 26, 26)
    assert (second.index, second.capacity, second.current_load) == (1, 27, 27)

    summary = layout.summary
    assert summary.container_count == 2
    assert summary.total_weight == 53
    assert summary.count_26t == 1
    assert summary.count_27t == 1
    assert summary.average_utilization == pytest.approx(100)
