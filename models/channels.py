"""Channel vocabulary shared by the tag parser, inventory and charts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

# Tag name on the wire -> attribute name on ``Reading``.
DEFAULT_CHANNEL_FIELDS: Mapping[str, str] = {
    "temp": "temperature",
    "humidity": "humidity",
    "pm1": "pm1",
    "pm25": "pm25",
    "pm10": "pm10",
    "air_quality": "air_quality",
    "pressure": "pressure",
    "light": "light",
    "rain": "rain",
}

# Protocol tags that never carry a measurement.
DEFAULT_IGNORED_TAGS: FrozenSet[str] = frozenset({"a", "s", "e", "p", "d", "alt", "client"})

# Particulate channels, in the order the anomaly detector evaluates them.
PARTICULATE_CHANNELS: Tuple[str, ...] = ("pm1", "pm25", "pm10")

PARTICULATE_LABELS: Mapping[str, str] = {
    "pm1": "PM1.0",
    "pm25": "PM2.5",
    "pm10": "PM10",
}

CHANNEL_LABELS: Mapping[str, str] = {
    "temperature": "Temperature",
    "humidity": "Humidity",
    "pm1": "PM1.0",
    "pm25": "PM2.5",
    "pm10": "PM10",
    "air_quality": "Air Quality",
    "pressure": "Pressure",
    "light": "Light",
    "rain": "Rain",
}


@dataclass(frozen=True)
class ChannelConfig:
    """Which tag names are measurements and where their values land."""

    fields: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_CHANNEL_FIELDS))
    ignored_tags: FrozenSet[str] = DEFAULT_IGNORED_TAGS
    particulate: Tuple[str, ...] = PARTICULATE_CHANNELS

    @property
    def known(self) -> FrozenSet[str]:
        return frozenset(self.fields)

    def field_for(self, tag_name: str) -> Optional[str]:
        return self.fields.get(tag_name)

    def extended(self, extra_fields: Dict[str, str]) -> "ChannelConfig":
        """Return a config that also recognises ``extra_fields``."""
        merged = dict(self.fields)
        merged.update(extra_fields)
        return ChannelConfig(
            fields=merged,
            ignored_tags=self.ignored_tags,
            particulate=self.particulate,
        )


DEFAULT_CHANNELS = ChannelConfig()


def channel_label(name: str) -> str:
    return CHANNEL_LABELS.get(name, name.upper())
