"""Windowed relay queries for a station and the retry/timeout policy around them."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable, List, Set

from models.events import READING_KIND, STATION_METADATA_KIND, EventFilter, RawEvent
from models.records import StationMetadata, WeatherView
from relay.client import EventSource, RelayError
from services.metadata import metadata_by_station
from services.pipeline import WeatherPipeline

logger = logging.getLogger(__name__)

HOUR = 3600


class FetchError(RuntimeError):
    """A fetch cycle gave up after exhausting its attempts."""


def build_station_queries(
    station: str,
    now: int,
    recent_window: int = HOUR,
    recent_limit: int = 200,
    history_hours: int = 24,
) -> List[EventFilter]:
    """Filters for one fetch cycle.

    Everything from the recent window, then a single event from each of the
    preceding hours (``history_hours - 1`` of them), then the latest station
    metadata.
    """
    authors = (station,)
    queries = [
        EventFilter(
            kinds=(READING_KIND,),
            authors=authors,
            since=now - recent_window,
            limit=recent_limit,
        )
    ]
    for hour in range(1, history_hours):
        window_end = now - hour * HOUR
        queries.append(
            EventFilter(
                kinds=(READING_KIND,),
                authors=authors,
                since=window_end - HOUR,
                until=window_end,
                limit=1,
            )
        )
    queries.append(EventFilter(kinds=(STATION_METADATA_KIND,), authors=authors, limit=1))
    return queries


def merge_events(events: Iterable[RawEvent]) -> List[RawEvent]:
    """Drop repeated deliveries of the same event id, keeping the first."""
    seen: Set[str] = set()
    merged: List[RawEvent] = []
    for event in events:
        if event.id in seen:
            continue
        seen.add(event.id)
        merged.append(event)
    return merged


class FetchOrchestrator:
    """Runs one fetch cycle for a station against an :class:`EventSource`."""

    def __init__(
        self,
        source: EventSource,
        pipeline: WeatherPipeline,
        timeout: float = 5.0,
        retries: int = 2,
        recent_window: int = HOUR,
        recent_limit: int = 200,
        history_hours: int = 24,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.source = source
        self.pipeline = pipeline
        self.timeout = timeout
        self.retries = retries
        self.recent_window = recent_window
        self.recent_limit = recent_limit
        self.history_hours = history_hours
        self.clock = clock

    async def fetch_view(self, station: str) -> WeatherView:
        events = await self.fetch_events(station)
        return self.pipeline.build_view(events, station=station)

    async def fetch_events(self, station: str) -> List[RawEvent]:
        queries = build_station_queries(
            station,
            now=int(self.clock()),
            recent_window=self.recent_window,
            recent_limit=self.recent_limit,
            history_hours=self.history_hours,
        )
        events = await self._query_with_retries(queries, station=station)
        return merge_events(events)

    async def discover_stations(self, limit: int = 50) -> List[StationMetadata]:
        """Every station that has published metadata, newest version each."""
        queries = [EventFilter(kinds=(STATION_METADATA_KIND,), limit=limit)]
        events = await self._query_with_retries(queries, station=None)
        return list(metadata_by_station(events).values())

    async def _query_with_retries(
        self, queries: List[EventFilter], station: str | None
    ) -> List[RawEvent]:
        attempts = self.retries + 1
        last_error: Exception | None = None
        reason = "no attempt made"
        for attempt in range(1, attempts + 1):
            started = time.perf_counter()
            try:
                events = await asyncio.wait_for(self.source.query(queries), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                last_error = exc
                reason = f"timed out after {self.timeout}s"
            except RelayError as exc:
                last_error = exc
                reason = str(exc)
            else:
                logger.debug(
                    "Relay query succeeded",
                    extra={
                        "station": station,
                        "attempt": attempt,
                        "event_count": len(events),
                        "elapsed_ms": int((time.perf_counter() - started) * 1000),
                    },
                )
                return events

            logger.warning(
                "Relay query failed",
                extra={"station": station, "attempt": attempt, "reason": reason},
            )

        logger.error(
            "Giving up on fetch cycle",
            extra={"station": station, "attempt": attempts},
        )
        raise FetchError(
            f"Relay query failed after {attempts} attempt(s): {reason}"
        ) from last_error
