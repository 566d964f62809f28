"""Pure transformation from a window of raw events to a weather view."""

from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, List, Optional, Tuple

from models.channels import DEFAULT_CHANNELS, ChannelConfig
from models.events import READING_KIND, STATION_METADATA_KIND, RawEvent, events_by_kind
from models.records import PartialReading, WeatherView
from services.anomaly import DEFAULT_SPIKE_RATIO, AnomalyDetector
from services.deduplicator import deduplicate, sort_newest_first
from services.inventory import build_inventory
from services.metadata import latest_metadata
from services.tag_parser import parse_reading_event

logger = logging.getLogger(__name__)


class WeatherPipeline:
    """Parse, deduplicate, flag and classify one fetch window.

    Holds configuration only; ``build_view`` has no side effects besides
    logging, so running it twice on the same events gives equal views.
    """

    def __init__(
        self,
        channels: ChannelConfig = DEFAULT_CHANNELS,
        spike_ratio: float = DEFAULT_SPIKE_RATIO,
    ) -> None:
        self.channels = channels
        self.detector = AnomalyDetector(ratio=spike_ratio, channels=channels.particulate)

    def build_view(self, events: Iterable[RawEvent], station: Optional[str] = None) -> WeatherView:
        grouped = events_by_kind(list(events))
        reading_events = self._for_station(grouped.get(READING_KIND, []), station)
        metadata_events = self._for_station(grouped.get(STATION_METADATA_KIND, []), station)

        parsed, observed = self._parse(sort_newest_first(reading_events))
        readings = deduplicate(parsed)
        readings, flagged = self.detector.scan(readings)

        logger.debug(
            "Built weather view",
            extra={
                "station": station,
                "event_count": len(reading_events),
                "reading_count": len(readings),
                "flagged_count": len(flagged),
            },
        )
        return WeatherView(
            readings=tuple(readings),
            flagged_readings=tuple(flagged),
            station_metadata=latest_metadata(metadata_events),
            detected_sensors=build_inventory(observed, self.channels.known),
        )

    def _parse(
        self, events: List[RawEvent]
    ) -> Tuple[List[Tuple[RawEvent, PartialReading]], List[FrozenSet[str]]]:
        parsed = []
        observed = []
        for event in events:
            partial, names = parse_reading_event(event, self.channels)
            parsed.append((event, partial))
            observed.append(names)
        return parsed, observed

    @staticmethod
    def _for_station(events: List[RawEvent], station: Optional[str]) -> List[RawEvent]:
        if station is None:
            return events
        kept = [event for event in events if event.pubkey == station]
        if len(kept) != len(events):
            logger.warning(
                "Dropping events from other authors",
                extra={"station": station, "event_count": len(events) - len(kept)},
            )
        return kept
