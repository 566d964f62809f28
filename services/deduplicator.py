"""Collapse events that share a timestamp into one reading."""

from __future__ import annotations

from typing import Iterable, List, Set, Tuple

from models.events import RawEvent
from models.records import PartialReading, Reading

ParsedEvent = Tuple[RawEvent, PartialReading]


def sort_newest_first(events: Iterable[RawEvent]) -> List[RawEvent]:
    """Order events by ``created_at`` descending.

    The sort is stable, so events sharing a second keep their delivery order.
    """
    return sorted(events, key=lambda event: event.created_at, reverse=True)


def deduplicate(parsed: Iterable[ParsedEvent]) -> List[Reading]:
    """Keep the first non-empty reading seen for each timestamp.

    ``parsed`` must already be newest-first; the result keeps that order.
    Empty partial readings never claim a timestamp, so a later duplicate
    with data can still fill it.
    """
    seen: Set[int] = set()
    readings: List[Reading] = []

    for event, partial in parsed:
        if event.created_at in seen or partial.is_empty():
            continue
        readings.append(
            Reading.from_partial(
                timestamp=event.created_at,
                partial=partial,
                source_event_id=event.id,
                raw_event=event.to_payload(),
            )
        )
        seen.add(event.created_at)

    return readings
