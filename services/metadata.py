"""Parse replaceable station-metadata events."""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence

from models.events import STATION_METADATA_KIND, RawEvent
from models.records import StationMetadata

logger = logging.getLogger(__name__)


def _first_value(tags: Sequence[Sequence[str]], name: str) -> Optional[str]:
    for tag in tags:
        if len(tag) >= 2 and tag[0] == name:
            return tag[1]
    return None


def _all_values(tags: Sequence[Sequence[str]], name: str) -> List[str]:
    return [tag[1] for tag in tags if len(tag) >= 2 and tag[0] == name]


def _parse_optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def default_station_name(pubkey: str) -> str:
    return f"Station {pubkey[:8]}"


def parse_station_metadata(event: RawEvent) -> StationMetadata:
    """Extract name, location, elevation and declared sensors from an event.

    An unparseable elevation is ``None``, never ``0``.
    """
    tags = event.tags
    elevation_raw = _first_value(tags, "elevation")
    elevation = _parse_optional_float(elevation_raw)
    if elevation_raw is not None and elevation is None:
        logger.debug(
            "Ignoring unparseable elevation",
            extra={"event_id": event.id, "reason": elevation_raw},
        )

    return StationMetadata(
        pubkey=event.pubkey,
        name=_first_value(tags, "name") or default_station_name(event.pubkey),
        location=_first_value(tags, "location"),
        elevation_meters=elevation,
        declared_sensors=tuple(_all_values(tags, "sensor")),
        updated_at=event.created_at,
    )


def latest_metadata(events: Iterable[RawEvent]) -> Optional[StationMetadata]:
    """Parse the newest metadata event; older versions are superseded."""
    candidates = [event for event in events if event.kind == STATION_METADATA_KIND]
    if not candidates:
        return None
    newest = max(candidates, key=lambda event: event.created_at)
    return parse_station_metadata(newest)


def metadata_by_station(events: Iterable[RawEvent]) -> Dict[str, StationMetadata]:
    """Newest metadata per station pubkey."""
    newest: Dict[str, RawEvent] = {}
    for event in events:
        if event.kind != STATION_METADATA_KIND:
            continue
        current = newest.get(event.pubkey)
        if current is None or event.created_at > current.created_at:
            newest[event.pubkey] = event
    return {pubkey: parse_station_metadata(event) for pubkey, event in newest.items()}
