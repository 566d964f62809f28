"""Tests for refresh coalescing, supersession and stale-data handling."""

from __future__ import annotations

import asyncio
import contextlib
from typing import List, Sequence

from datastore.snapshots import SnapshotStore
from models.events import READING_KIND, EventFilter, RawEvent
from models.records import FetchStatus
from relay.client import RelayError
from services.fetcher import FetchOrchestrator
from services.monitor import StationMonitor
from services.pipeline import WeatherPipeline

STATION = "station"
NOW = 1_700_000_000


def _events(event_id: str, temperature: float) -> List[RawEvent]:
    return [
        RawEvent(
            id=event_id,
            pubkey=STATION,
            created_at=NOW - 30,
            kind=READING_KIND,
            tags=(("temp", str(temperature)),),
        )
    ]


class Gate:
    def __init__(self, events: List[RawEvent]) -> None:
        self.events = events
        self.opened = asyncio.Event()

    def open(self) -> None:
        self.opened.set()


class ScriptedSource:
    """Replays outcomes per call: event lists, exceptions or gates to await."""

    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[Sequence[EventFilter]] = []

    async def query(self, filters: Sequence[EventFilter]) -> List[RawEvent]:
        self.calls.append(filters)
        if not self.outcomes:
            await asyncio.Event().wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, Gate):
            await outcome.opened.wait()
            return outcome.events
        return outcome


def _monitor(source: ScriptedSource, store: SnapshotStore | None = None) -> StationMonitor:
    orchestrator = FetchOrchestrator(
        source=source,
        pipeline=WeatherPipeline(),
        timeout=5.0,
        retries=2,
        clock=lambda: float(NOW),
    )
    return StationMonitor(orchestrator=orchestrator, store=store or SnapshotStore(), clock=lambda: float(NOW))


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def test_refresh_stores_snapshot() -> None:
    source = ScriptedSource([_events("r1", 21.5)])
    monitor = _monitor(source)

    snapshot = asyncio.run(monitor.refresh(STATION))

    assert snapshot.status is FetchStatus.ok
    assert snapshot.fetched_at == NOW
    assert snapshot.generation == 1
    assert snapshot.view is not None
    assert snapshot.view.readings[0].temperature == 21.5
    stored = monitor.snapshot(STATION)
    assert stored is not None and stored.view == snapshot.view


def test_concurrent_refreshes_share_one_cycle() -> None:
    async def scenario():
        gate = Gate(_events("r1", 20.0))
        source = ScriptedSource([gate])
        monitor = _monitor(source)

        periodic = asyncio.create_task(monitor.refresh(STATION))
        manual = asyncio.create_task(monitor.refresh(STATION))
        await _settle()
        assert monitor.is_refreshing(STATION)
        gate.open()
        results = await asyncio.gather(periodic, manual)
        return source, monitor, results

    source, monitor, (first, second) = asyncio.run(scenario())

    assert len(source.calls) == 1
    assert first.generation == second.generation == 1
    assert not monitor.is_refreshing(STATION)


def test_forced_refresh_supersedes_in_flight_cycle() -> None:
    async def scenario():
        slow = Gate(_events("old", 10.0))
        fast = Gate(_events("new", 30.0))
        source = ScriptedSource([slow, fast])
        monitor = _monitor(source)

        stale_cycle = asyncio.create_task(monitor.refresh(STATION))
        await _settle()
        fresh_cycle = asyncio.create_task(monitor.refresh(STATION, force=True))
        await _settle()
        fast.open()
        fresh = await fresh_cycle
        slow.open()
        late = await stale_cycle
        return monitor, fresh, late

    monitor, fresh, late = asyncio.run(scenario())

    assert fresh.generation == 2
    assert fresh.view.readings[0].source_event_id == "new"
    stored = monitor.snapshot(STATION)
    assert stored.generation == 2
    assert stored.view.readings[0].source_event_id == "new"
    assert late.view.readings[0].source_event_id == "new"


def test_failed_cycle_keeps_previous_view_as_stale() -> None:
    down = RelayError("relay down")
    source = ScriptedSource([_events("r1", 18.0), down, down, down])
    monitor = _monitor(source)

    async def scenario():
        await monitor.refresh(STATION)
        return await monitor.refresh(STATION)

    snapshot = asyncio.run(scenario())

    assert snapshot.status is FetchStatus.stale
    assert "relay down" in snapshot.error
    assert snapshot.view is not None
    assert snapshot.view.readings[0].temperature == 18.0
    assert snapshot.fetched_at == NOW
    assert len(source.calls) == 4


def test_failed_cycle_without_prior_data() -> None:
    down = RelayError("relay down")
    monitor = _monitor(ScriptedSource([down, down, down]))

    snapshot = asyncio.run(monitor.refresh(STATION))

    assert snapshot.status is FetchStatus.failed
    assert snapshot.view is None
    assert monitor.snapshot(STATION).status is FetchStatus.failed


def test_run_periodic_repeats_until_cancelled() -> None:
    blip = RelayError("blip")
    source = ScriptedSource([_events("a", 1.0), blip, blip, blip, _events("b", 2.0)])
    monitor = _monitor(source)

    async def scenario():
        loop_task = asyncio.create_task(monitor.run_periodic([STATION], interval=0.01))
        for _ in range(300):
            await asyncio.sleep(0.01)
            current = monitor.snapshot(STATION)
            if current is not None and current.view and current.view.readings[0].source_event_id == "b":
                break
        loop_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await loop_task
        await monitor.aclose()

    asyncio.run(scenario())

    assert len(source.calls) >= 5
    snapshot = monitor.snapshot(STATION)
    assert snapshot.status is FetchStatus.ok
    assert snapshot.view.readings[0].source_event_id == "b"


def test_ensure_fresh_refetches_once_the_snapshot_ages() -> None:
    now = [float(NOW)]
    source = ScriptedSource([_events("first", 1.0), _events("second", 2.0)])
    orchestrator = FetchOrchestrator(
        source=source, pipeline=WeatherPipeline(), timeout=5.0, retries=0, clock=lambda: now[0]
    )
    monitor = StationMonitor(orchestrator=orchestrator, store=SnapshotStore(), clock=lambda: now[0])

    async def scenario():
        first = await monitor.ensure_fresh(STATION, max_age=30)
        now[0] += 10
        cached = await monitor.ensure_fresh(STATION, max_age=30)
        now[0] += 20
        aged = await monitor.ensure_fresh(STATION, max_age=30)
        return first, cached, aged

    first, cached, aged = asyncio.run(scenario())

    assert first.view.readings[0].source_event_id == "first"
    assert cached.generation == 1
    assert len(source.calls) == 2
    assert aged.generation == 2
    assert aged.attempted_at == NOW + 30
    assert aged.view.readings[0].source_event_id == "second"


def test_ensure_fresh_retries_a_failed_station_immediately() -> None:
    down = RelayError("relay down")
    source = ScriptedSource([down, _events("recovered", 3.0)])
    orchestrator = FetchOrchestrator(
        source=source, pipeline=WeatherPipeline(), timeout=5.0, retries=0, clock=lambda: float(NOW)
    )
    monitor = StationMonitor(orchestrator=orchestrator, store=SnapshotStore(), clock=lambda: float(NOW))

    async def scenario():
        failed = await monitor.ensure_fresh(STATION, max_age=30)
        recovered = await monitor.ensure_fresh(STATION, max_age=30)
        return failed, recovered

    failed, recovered = asyncio.run(scenario())

    assert failed.status is FetchStatus.failed
    assert failed.attempted_at == NOW
    assert recovered.status is FetchStatus.ok
    assert recovered.view.readings[0].source_event_id == "recovered"
