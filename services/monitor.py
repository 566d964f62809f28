"""Refresh orchestration per station: coalescing, supersession and periodic polling."""

from __future__ import annotations

import asyncio
import logging
import time
from functools import lru_cache
from typing import Callable, Dict, Iterable, Optional

from datastore.snapshots import SnapshotStore, build_default_store
from models.records import FetchStatus, StationSnapshot
from relay.client import HttpRelayClient
from services.fetcher import FetchError, FetchOrchestrator
from services.pipeline import WeatherPipeline
from settings import get_settings

logger = logging.getLogger(__name__)


class StationMonitor:
    """Keeps the latest weather view per station in a :class:`SnapshotStore`.

    At most one fetch cycle runs per station. ``refresh`` joins a cycle that
    is already in flight unless ``force`` is set, in which case a new
    generation starts and the older cycle's result is dropped when it lands.
    A failed cycle keeps the previous view and marks it stale.
    """

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        store: SnapshotStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.orchestrator = orchestrator
        self.store = store
        self.clock = clock
        self._inflight: Dict[str, asyncio.Task[StationSnapshot]] = {}
        self._generations: Dict[str, int] = {}

    async def refresh(self, station: str, force: bool = False) -> StationSnapshot:
        task = self._inflight.get(station)
        if task is None or task.done() or force:
            task = self._start_cycle(station)
        return await asyncio.shield(task)

    async def ensure_fresh(self, station: str, max_age: float) -> StationSnapshot:
        """Stored snapshot, refreshed first when it is older than ``max_age``.

        Stations outside the periodic set get their cadence from readers this
        way. A failed or pending snapshot is always retried.
        """
        snapshot = self.snapshot(station)
        if snapshot is None or self._is_due(snapshot, max_age):
            return await self.refresh(station)
        return snapshot

    def snapshot(self, station: str) -> Optional[StationSnapshot]:
        return self.store.get_item(station)

    def is_refreshing(self, station: str) -> bool:
        task = self._inflight.get(station)
        return task is not None and not task.done()

    async def run_periodic(self, stations: Iterable[str], interval: float) -> None:
        """Refresh ``stations`` every ``interval`` seconds until cancelled."""
        watched = list(stations)
        while True:
            results = await asyncio.gather(
                *(self.refresh(station) for station in watched),
                return_exceptions=True,
            )
            for station, result in zip(watched, results):
                if isinstance(result, Exception):
                    logger.error(
                        "Periodic refresh crashed",
                        exc_info=result,
                        extra={"station": station},
                    )
            await asyncio.sleep(interval)

    async def aclose(self) -> None:
        tasks = [task for task in self._inflight.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
        close = getattr(self.orchestrator.source, "aclose", None)
        if close is not None:
            await close()

    def _start_cycle(self, station: str) -> asyncio.Task[StationSnapshot]:
        generation = self._generations.get(station, 0) + 1
        self._generations[station] = generation
        task = asyncio.create_task(self._run_cycle(station, generation))
        self._inflight[station] = task
        task.add_done_callback(lambda done, key=station: self._clear_task(key, done))
        return task

    def _clear_task(self, station: str, task: asyncio.Task[StationSnapshot]) -> None:
        if self._inflight.get(station) is task:
            self._inflight.pop(station, None)

    def _is_due(self, snapshot: StationSnapshot, max_age: float) -> bool:
        if snapshot.status in (FetchStatus.pending, FetchStatus.failed):
            return True
        if snapshot.attempted_at is None:
            return True
        return self.clock() - snapshot.attempted_at >= max_age

    def _is_current(self, station: str, generation: int) -> bool:
        return self._generations.get(station) == generation

    def _current_or_pending(self, station: str) -> StationSnapshot:
        return self.store.get_item(station) or StationSnapshot(station=station)

    async def _run_cycle(self, station: str, generation: int) -> StationSnapshot:
        started = time.perf_counter()
        try:
            view = await self.orchestrator.fetch_view(station)
        except FetchError as exc:
            return self._record_failure(station, generation, exc)

        if not self._is_current(station, generation):
            logger.info(
                "Discarding superseded fetch result",
                extra={"station": station, "generation": generation},
            )
            return self._current_or_pending(station)

        snapshot = StationSnapshot(
            station=station,
            status=FetchStatus.ok,
            view=view,
            fetched_at=int(self.clock()),
            generation=generation,
            attempted_at=int(self.clock()),
        )
        self.store.put_item(snapshot)
        logger.info(
            "Station refreshed",
            extra={
                "station": station,
                "generation": generation,
                "reading_count": len(view.readings),
                "flagged_count": len(view.flagged_readings),
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return snapshot

    def _record_failure(self, station: str, generation: int, exc: FetchError) -> StationSnapshot:
        if not self._is_current(station, generation):
            return self._current_or_pending(station)

        previous = self.store.get_item(station)
        if previous is not None and previous.view is not None:
            snapshot = StationSnapshot(
                station=station,
                status=FetchStatus.stale,
                view=previous.view,
                fetched_at=previous.fetched_at,
                error=str(exc),
                generation=generation,
                attempted_at=int(self.clock()),
            )
        else:
            snapshot = StationSnapshot(
                station=station,
                status=FetchStatus.failed,
                error=str(exc),
                generation=generation,
                attempted_at=int(self.clock()),
            )
        self.store.put_item(snapshot)
        return snapshot


@lru_cache
def build_default_monitor() -> StationMonitor:
    """Factory that wires the monitor against the configured relay."""
    settings = get_settings()
    source = HttpRelayClient(settings.relay_url, timeout=settings.fetch_timeout)
    orchestrator = FetchOrchestrator(
        source=source,
        pipeline=WeatherPipeline(spike_ratio=settings.anomaly_ratio),
        timeout=settings.fetch_timeout,
        retries=settings.fetch_retries,
        recent_window=settings.recent_window,
        recent_limit=settings.recent_limit,
        history_hours=settings.history_hours,
    )
    return StationMonitor(orchestrator=orchestrator, store=build_default_store())
