"""Classify observed sensor types into supported and unsupported."""

from __future__ import annotations

from typing import AbstractSet, Iterable

from models.records import SensorInventory


def build_inventory(
    observed: Iterable[AbstractSet[str]],
    known: AbstractSet[str],
) -> SensorInventory:
    """Partition the union of ``observed`` tag names by membership in ``known``."""
    names = frozenset().union(*observed)
    return SensorInventory(
        supported=frozenset(name for name in names if name in known),
        unsupported=frozenset(name for name in names if name not in known),
    )
