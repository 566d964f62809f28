from __future__ import annotations

import copy
from functools import lru_cache
from threading import Lock
from typing import Dict, Optional

from models.records import StationSnapshot


class SnapshotStore:
    """Latest fetch outcome per station, kept in memory only."""

    def __init__(self) -> None:
        self._items: Dict[str, StationSnapshot] = {}
        self._lock = Lock()

    def put_item(self, item: StationSnapshot) -> None:
        with self._lock:
            self._items[item.station] = copy.deepcopy(item)

    def get_item(self, station: str) -> Optional[StationSnapshot]:
        with self._lock:
            item = self._items.get(station)
            if item is None:
                return None
            return copy.deepcopy(item)

    def scan(self) -> list[StationSnapshot]:
        """Return deep copies of all stored snapshots."""

        with self._lock:
            return [copy.deepcopy(item) for item in self._items.values()]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


@lru_cache
def build_default_store() -> SnapshotStore:
    return SnapshotStore()
