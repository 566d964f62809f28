"""Domain models shared across services."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

READING_FIELDS: Tuple[str, ...] = (
    "temperature",
    "humidity",
    "pm1",
    "pm25",
    "pm10",
    "air_quality",
    "pressure",
    "light",
    "rain",
)


@dataclass(slots=True)
class PartialReading:
    """Channel values parsed out of a single event, before deduplication.

    ``values`` is keyed by the field a configured tag maps to; ``extra``
    holds tags outside the channel vocabulary under their own name.
    """

    values: Dict[str, float] = field(default_factory=dict)
    extra: Dict[str, float] = field(default_factory=dict)
    sensor_models: Dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.values and not self.extra


@dataclass(frozen=True, slots=True)
class Reading:
    """One deduplicated, timestamped set of channel values from a station.

    Well-known channels are plain attributes; anything else the station
    publishes is kept in ``extra`` under its tag name.
    """

    timestamp: int
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    pm1: Optional[float] = None
    pm25: Optional[float] = None
    pm10: Optional[float] = None
    air_quality: Optional[float] = None
    pressure: Optional[float] = None
    light: Optional[float] = None
    rain: Optional[float] = None
    extra: Dict[str, float] = field(default_factory=dict)
    sensor_models: Dict[str, str] = field(default_factory=dict)
    source_event_id: str = ""
    raw_event: Optional[Dict[str, object]] = None

    @classmethod
    def from_partial(
        cls,
        timestamp: int,
        partial: PartialReading,
        source_event_id: str = "",
        raw_event: Optional[Dict[str, object]] = None,
    ) -> "Reading":
        known = {name: value for name, value in partial.values.items() if name in READING_FIELDS}
        extra = dict(partial.extra)
        extra.update(
            (name, value) for name, value in partial.values.items() if name not in READING_FIELDS
        )
        return cls(
            timestamp=timestamp,
            extra=extra,
            sensor_models=dict(partial.sensor_models),
            source_event_id=source_event_id,
            raw_event=raw_event,
            **known,
        )

    def value(self, channel: str) -> Optional[float]:
        if channel in READING_FIELDS:
            return getattr(self, channel)
        return self.extra.get(channel)

    def with_value(self, channel: str, value: Optional[float]) -> "Reading":
        if channel in READING_FIELDS:
            return dataclasses.replace(self, **{channel: value})
        extra = dict(self.extra)
        if value is None:
            extra.pop(channel, None)
        else:
            extra[channel] = value
        return dataclasses.replace(self, extra=extra)

    def channels(self) -> Dict[str, float]:
        """All present channel values, well-known first, then extras by name.

        An extra channel that shares its name with a well-known field is
        left out; the field keeps the name.
        """
        present = {
            name: getattr(self, name)
            for name in READING_FIELDS
            if getattr(self, name) is not None
        }
        for name in sorted(self.extra):
            if name not in READING_FIELDS:
                present[name] = self.extra[name]
        return present


@dataclass(frozen=True, slots=True)
class FlaggedReading:
    """A channel value suppressed as a likely sensor artifact."""

    sensor: str
    channel: str
    value: float
    previous_value: float
    timestamp: int
    event_id: str
    reason: str
    raw_event: Optional[Dict[str, object]] = None


@dataclass(frozen=True, slots=True)
class StationMetadata:
    pubkey: str
    name: str
    location: Optional[str] = None
    elevation_meters: Optional[float] = None
    declared_sensors: Tuple[str, ...] = ()
    updated_at: Optional[int] = None

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        """``(lat, lon)`` when ``location`` follows the ``"lat,lon"`` convention."""
        if not self.location:
            return None
        parts = self.location.split(",")
        if len(parts) != 2:
            return None
        try:
            return float(parts[0]), float(parts[1])
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class SensorInventory:
    supported: FrozenSet[str] = frozenset()
    unsupported: FrozenSet[str] = frozenset()

    @property
    def all(self) -> FrozenSet[str]:
        return self.supported | self.unsupported


@dataclass(frozen=True, slots=True)
class WeatherView:
    """Everything derived from one fetch window for one station."""

    readings: Tuple[Reading, ...] = ()
    flagged_readings: Tuple[FlaggedReading, ...] = ()
    station_metadata: Optional[StationMetadata] = None
    detected_sensors: SensorInventory = field(default_factory=SensorInventory)

    def latest(self) -> Optional[Reading]:
        return self.readings[0] if self.readings else None


@dataclass(frozen=True, slots=True)
class GridSpec:
    """A fixed display grid anchored to ``now``."""

    name: str
    slot_count: int
    slot_seconds: int
    tolerance_seconds: int


@dataclass(slots=True)
class BucketedSeries:
    grid: GridSpec
    slots: List[int]
    values: Dict[str, List[Optional[float]]] = field(default_factory=dict)


class FetchStatus(str, Enum):
    """Lifecycle of a station's most recent fetch cycle."""

    pending = "pending"
    ok = "ok"
    stale = "stale"
    failed = "failed"


@dataclass(slots=True)
class StationSnapshot:
    """Outcome of a station's latest fetch cycle.

    ``fetched_at`` is when ``view`` was obtained; ``attempted_at`` is when the
    last cycle finished, successful or not.
    """

    station: str
    status: FetchStatus = FetchStatus.pending
    view: Optional[WeatherView] = None
    fetched_at: Optional[int] = None
    error: Optional[str] = None
    generation: int = 0
    attempted_at: Optional[int] = None
