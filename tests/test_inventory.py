from __future__ import annotations

from services.inventory import build_inventory


def test_inventory_partitions_observed_names() -> None:
    inventory = build_inventory(
        [{"temp", "pm25"}, {"co2"}, {"temp", "uv_index"}],
        known=frozenset({"temp", "humidity", "pm25"}),
    )

    assert inventory.supported == {"temp", "pm25"}
    assert inventory.unsupported == {"co2", "uv_index"}
    assert inventory.all == {"temp", "pm25", "co2", "uv_index"}


def test_inventory_of_nothing_is_empty() -> None:
    inventory = build_inventory([], known=frozenset({"temp"}))

    assert inventory.all == frozenset()
