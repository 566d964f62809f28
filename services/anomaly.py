"""Spike detection for particulate channels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from models.channels import PARTICULATE_CHANNELS, PARTICULATE_LABELS
from models.records import FlaggedReading, Reading

logger = logging.getLogger(__name__)

DEFAULT_SPIKE_RATIO = 5.0

# Chart layer convention: a particulate value of zero means "no data".
SUPPRESSED_VALUE = 0.0


@dataclass(slots=True)
class ChannelState:
    """Last trusted value of one channel during a scan."""

    last_valid: Optional[float] = None

    def is_spike(self, value: float, ratio: float) -> bool:
        if self.last_valid is None or self.last_valid <= 0:
            return False
        return value > self.last_valid * ratio

    def accept(self, value: float) -> None:
        if value > 0:
            self.last_valid = value


def spike_reason(value: float, previous: float) -> str:
    return f"Value is {value / previous:.1f}x previous reading ({previous:.1f} µg/m³)"


class AnomalyDetector:
    """Flags particulate values that jump past ``ratio`` times the last trusted one.

    Each channel keeps its own :class:`ChannelState`; a spike on one channel
    does not move the baseline of another. A flagged value is replaced by
    ``SUPPRESSED_VALUE`` on the returned reading and recorded as a
    :class:`FlaggedReading`. Zero and absent values are gaps: they are never
    flagged and never become the baseline.
    """

    def __init__(
        self,
        ratio: float = DEFAULT_SPIKE_RATIO,
        channels: Sequence[str] = PARTICULATE_CHANNELS,
    ) -> None:
        self.ratio = ratio
        self.channels = tuple(channels)

    def scan(
        self, readings: Sequence[Reading]
    ) -> Tuple[List[Reading], List[FlaggedReading]]:
        """Scan newest-first ``readings`` in chronological order.

        Returns the readings (newest-first, with spikes suppressed) and the
        flagged records, newest reading first and channels in evaluation
        order within a reading.
        """
        states: Dict[str, ChannelState] = {name: ChannelState() for name in self.channels}
        checked: List[Reading] = []
        flagged_per_reading: List[List[FlaggedReading]] = []

        for reading in reversed(readings):
            reading, flagged = self._check(reading, states)
            checked.append(reading)
            if flagged:
                flagged_per_reading.append(flagged)

        checked.reverse()
        flagged_records = [
            record for group in reversed(flagged_per_reading) for record in group
        ]
        return checked, flagged_records

    def _check(
        self, reading: Reading, states: Dict[str, ChannelState]
    ) -> Tuple[Reading, List[FlaggedReading]]:
        flagged: List[FlaggedReading] = []
        for channel in self.channels:
            state = states[channel]
            value = reading.value(channel) or 0.0
            previous = state.last_valid
            if previous is None or not state.is_spike(value, self.ratio):
                state.accept(value)
                continue

            record = FlaggedReading(
                sensor=PARTICULATE_LABELS.get(channel, channel.upper()),
                channel=channel,
                value=value,
                previous_value=previous,
                timestamp=reading.timestamp,
                event_id=reading.source_event_id,
                reason=spike_reason(value, previous),
                raw_event=reading.raw_event,
            )
            flagged.append(record)
            reading = reading.with_value(channel, SUPPRESSED_VALUE)
            logger.info(
                "Suppressed particulate spike",
                extra={
                    "event_id": reading.source_event_id,
                    "channel": channel,
                    "reason": record.reason,
                },
            )
        return reading, flagged
