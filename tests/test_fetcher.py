"""Tests for query construction and the retry/timeout policy."""

from __future__ import annotations

import asyncio
from typing import List, Sequence

import pytest

from models.events import READING_KIND, STATION_METADATA_KIND, EventFilter, RawEvent
from relay.client import RelayError
from services.fetcher import FetchError, FetchOrchestrator, build_station_queries, merge_events
from services.pipeline import WeatherPipeline

NOW = 1_700_000_000
STATION = "station"


class ScriptedSource:
    """Event source that replays a list of outcomes, one per query call."""

    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[Sequence[EventFilter]] = []

    async def query(self, filters: Sequence[EventFilter]) -> List[RawEvent]:
        self.calls.append(filters)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome == "hang":
            await asyncio.sleep(10)
        return outcome


def _orchestrator(source, retries: int = 2, timeout: float = 1.0) -> FetchOrchestrator:
    return FetchOrchestrator(
        source=source,
        pipeline=WeatherPipeline(),
        timeout=timeout,
        retries=retries,
        clock=lambda: float(NOW),
    )


def _event(event_id: str, created_at: int, kind: int = READING_KIND) -> RawEvent:
    return RawEvent(
        id=event_id,
        pubkey=STATION,
        created_at=created_at,
        kind=kind,
        tags=(("temp", "20"),) if kind == READING_KIND else (("name", "Yard"),),
    )


def test_build_station_queries_shape() -> None:
    queries = build_station_queries(STATION, now=NOW)

    assert len(queries) == 25
    recent = queries[0]
    assert recent.kinds == (READING_KIND,)
    assert recent.authors == (STATION,)
    assert (recent.since, recent.until, recent.limit) == (NOW - 3600, None, 200)

    hourly = queries[1:24]
    assert all(query.limit == 1 for query in hourly)
    assert (hourly[0].since, hourly[0].until) == (NOW - 7200, NOW - 3600)
    assert (hourly[-1].since, hourly[-1].until) == (NOW - 24 * 3600, NOW - 23 * 3600)

    metadata = queries[-1]
    assert metadata.kinds == (STATION_METADATA_KIND,)
    assert metadata.authors == (STATION,)
    assert metadata.limit == 1


def test_merge_events_drops_repeated_ids() -> None:
    merged = merge_events([_event("a", 1), _event("b", 2), _event("a", 1)])

    assert [event.id for event in merged] == ["a", "b"]


def test_fetch_view_sends_all_queries_together() -> None:
    source = ScriptedSource(
        [[_event("r1", NOW - 10), _event("r1", NOW - 10), _event("m", 5, STATION_METADATA_KIND)]]
    )

    view = asyncio.run(_orchestrator(source).fetch_view(STATION))

    assert len(source.calls) == 1
    assert len(source.calls[0]) == 25
    assert [reading.source_event_id for reading in view.readings] == ["r1"]
    assert view.station_metadata is not None
    assert view.station_metadata.name == "Yard"


def test_transient_failures_are_retried() -> None:
    source = ScriptedSource([RelayError("down"), RelayError("down"), [_event("r1", NOW)]])

    view = asyncio.run(_orchestrator(source).fetch_view(STATION))

    assert len(source.calls) == 3
    assert len(view.readings) == 1


def test_gives_up_after_retries() -> None:
    source = ScriptedSource([RelayError("one"), RelayError("two"), RelayError("three")])

    with pytest.raises(FetchError, match="3 attempt"):
        asyncio.run(_orchestrator(source).fetch_view(STATION))

    assert len(source.calls) == 3


def test_hanging_query_times_out() -> None:
    source = ScriptedSource(["hang"])

    with pytest.raises(FetchError, match="1 attempt"):
        asyncio.run(_orchestrator(source, retries=0, timeout=0.05).fetch_events(STATION))


def test_unexpected_errors_propagate() -> None:
    source = ScriptedSource([KeyError("bug")])

    with pytest.raises(KeyError):
        asyncio.run(_orchestrator(source).fetch_events(STATION))


def test_discover_stations_uses_unscoped_metadata_query() -> None:
    other = RawEvent(
        id="o", pubkey="other-station", created_at=3, kind=STATION_METADATA_KIND, tags=()
    )
    source = ScriptedSource([[_event("m", 5, STATION_METADATA_KIND), other]])

    stations = asyncio.run(_orchestrator(source).discover_stations(limit=10))

    (query,) = source.calls[0]
    assert query.kinds == (STATION_METADATA_KIND,)
    assert query.authors is None
    assert query.limit == 10
    assert [(station.pubkey, station.name) for station in stations] == [
        (STATION, "Yard"),
        ("other-station", "Station other-st"),
    ]
