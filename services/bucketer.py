"""Map readings onto fixed, gap-aware display grids."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from models.channels import DEFAULT_CHANNELS, PARTICULATE_CHANNELS, ChannelConfig
from models.records import READING_FIELDS, BucketedSeries, GridSpec, Reading

LAST_HOUR_GRID = GridSpec(name="last-hour", slot_count=60, slot_seconds=60, tolerance_seconds=30)
LAST_24_HOURS_GRID = GridSpec(
    name="last-24-hours", slot_count=24, slot_seconds=3600, tolerance_seconds=1800
)

GRIDS: Dict[str, GridSpec] = {grid.name: grid for grid in (LAST_HOUR_GRID, LAST_24_HOURS_GRID)}


def slot_centers(grid: GridSpec, now: int) -> List[int]:
    """Slot timestamps, oldest first, the last one being ``now``."""
    return [now - index * grid.slot_seconds for index in range(grid.slot_count - 1, -1, -1)]


def match_slot(readings: Sequence[Reading], center: int, tolerance: int) -> Optional[Reading]:
    """First reading, in supplied order, strictly within ``tolerance`` of ``center``."""
    for reading in readings:
        if abs(reading.timestamp - center) < tolerance:
            return reading
    return None


def observed_channels(readings: Sequence[Reading]) -> List[str]:
    present = set()
    for reading in readings:
        present.update(reading.channels())
    known = [name for name in READING_FIELDS if name in present]
    return known + sorted(present - set(READING_FIELDS))


def resolve_channels(
    names: Sequence[str], vocabulary: ChannelConfig = DEFAULT_CHANNELS
) -> List[str]:
    """Map requested channel names to reading fields, dropping repeats.

    Tag names such as ``temp`` resolve to their field; anything else is
    taken as a field or extra channel name as given.
    """
    resolved: List[str] = []
    for name in names:
        target = vocabulary.field_for(name) or name
        if target not in resolved:
            resolved.append(target)
    return resolved


def bucket_readings(
    readings: Sequence[Reading],
    grid: GridSpec,
    now: int,
    channels: Optional[Sequence[str]] = None,
    particulate: Sequence[str] = PARTICULATE_CHANNELS,
    vocabulary: ChannelConfig = DEFAULT_CHANNELS,
) -> BucketedSeries:
    """Resolve every slot of ``grid`` to a value or ``None`` per channel.

    ``channels`` may name tags or fields; the series are keyed by field.

    Unmatched slots stay ``None``; nothing is interpolated. A particulate
    value of zero is a suppressed or missing sample and also becomes ``None``.
    """
    slots = slot_centers(grid, now)
    matches = [match_slot(readings, center, grid.tolerance_seconds) for center in slots]
    names = (
        resolve_channels(channels, vocabulary)
        if channels is not None
        else observed_channels(readings)
    )

    values: Dict[str, List[Optional[float]]] = {}
    for name in names:
        series: List[Optional[float]] = []
        for reading in matches:
            value = reading.value(name) if reading is not None else None
            if value is not None and name in particulate and value == 0:
                value = None
            series.append(value)
        values[name] = series

    return BucketedSeries(grid=grid, slots=slots, values=values)


def split_recent(readings: Sequence[Reading], now: int, window: int = 3600) -> List[Reading]:
    """Readings no older than ``window`` seconds, in their original order."""
    cutoff = now - window
    return [reading for reading in readings if reading.timestamp >= cutoff]
