"""Turn a reading event's tags (or legacy text content) into channel values."""

from __future__ import annotations

import logging
import math
import re
from typing import FrozenSet, Iterable, Optional, Sequence, Set, Tuple

from models.channels import DEFAULT_CHANNELS, ChannelConfig
from models.events import RawEvent
from models.records import PartialReading

logger = logging.getLogger(__name__)

_LEGACY_PATTERNS = {
    "temperature": re.compile(r"T=(-?[\d.]+)C"),
    "humidity": re.compile(r"H=(-?[\d.]+)%"),
    "pm25": re.compile(r"PM2\.5=(-?[\d.]+)"),
}
_LEGACY_TAG_NAMES = frozenset({"temp", "humidity", "pm25"})


def _parse_number(raw: str) -> Optional[float]:
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_tags(
    tags: Iterable[Sequence[str]],
    channels: ChannelConfig = DEFAULT_CHANNELS,
) -> Tuple[PartialReading, Set[str]]:
    """Parse ``(name, value[, model])`` tags into a partial reading.

    Returns the reading and the set of tag names that carried a usable
    number, known or not. Tags on the ignore-list, tags without a value and
    tags whose value is not a finite number are skipped. When a channel
    appears more than once the last occurrence wins, for both value and
    model. Only tags in ``channels`` fill reading fields; any other tag goes
    to ``extra`` under its own name, even one spelled like a field.
    """
    partial = PartialReading()
    observed: Set[str] = set()

    for tag in tags:
        if len(tag) < 2:
            continue
        name = tag[0]
        if name in channels.ignored_tags:
            continue

        value = _parse_number(tag[1])
        if value is None:
            logger.debug("Skipping non-numeric tag", extra={"channel": name, "reason": tag[1]})
            continue

        observed.add(name)
        target = channels.field_for(name)
        if target is None:
            target = name
            partial.extra[name] = value
        else:
            partial.values[target] = value
        if len(tag) >= 3 and tag[2]:
            partial.sensor_models[target] = tag[2]

    return partial, observed


def parse_legacy_content(content: str) -> Optional[PartialReading]:
    """Parse ``"T=<float>C H=<float>% PM2.5=<float>"`` free text.

    All three fields must be present; otherwise there is no reading.
    """
    values = {}
    for target, pattern in _LEGACY_PATTERNS.items():
        match = pattern.search(content)
        if match is None:
            return None
        value = _parse_number(match.group(1))
        if value is None:
            return None
        values[target] = value
    return PartialReading(values=values)


def parse_reading_event(
    event: RawEvent,
    channels: ChannelConfig = DEFAULT_CHANNELS,
) -> Tuple[PartialReading, FrozenSet[str]]:
    """Parse a reading event, falling back to the legacy content format."""
    partial, observed = parse_tags(event.tags, channels)
    if not partial.is_empty():
        return partial, frozenset(observed)

    if event.content:
        legacy = parse_legacy_content(event.content)
        if legacy is not None:
            return legacy, _LEGACY_TAG_NAMES

    logger.debug(
        "Event carries no usable channels",
        extra={"event_id": event.id, "reason": "empty"},
    )
    return partial, frozenset(observed)
