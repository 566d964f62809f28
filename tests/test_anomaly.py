"""Unit tests for particulate spike detection."""

from __future__ import annotations

import logging

from models.records import Reading
from services.anomaly import AnomalyDetector, ChannelState


def _newest_first(*values_by_age: dict) -> list[Reading]:
    """Build readings from oldest to newest, returned newest-first."""
    readings = [
        Reading(timestamp=100 + index * 60, source_event_id=f"evt-{index}", **values)
        for index, values in enumerate(values_by_age)
    ]
    return list(reversed(readings))


def test_spike_is_flagged_and_baseline_is_kept() -> None:
    readings = _newest_first({"pm25": 10.0}, {"pm25": 12.0}, {"pm25": 80.0}, {"pm25": 11.0})

    checked, flagged = AnomalyDetector().scan(readings)

    assert [reading.pm25 for reading in checked] == [11.0, 0.0, 12.0, 10.0]
    assert len(flagged) == 1
    record = flagged[0]
    assert record.channel == "pm25"
    assert record.sensor == "PM2.5"
    assert record.value == 80.0
    assert record.previous_value == 12.0
    assert record.event_id == "evt-2"
    assert record.timestamp == checked[1].timestamp
    assert record.reason == "Value is 6.7x previous reading (12.0 µg/m³)"


def test_no_flag_without_positive_baseline() -> None:
    readings = _newest_first({"pm10": 0.0}, {"pm10": 500.0}, {"pm10": 0.0})

    checked, flagged = AnomalyDetector().scan(readings)

    assert flagged == []
    assert [reading.pm10 for reading in checked] == [0.0, 500.0, 0.0]


def test_zero_is_a_gap_not_a_baseline() -> None:
    readings = _newest_first({"pm1": 4.0}, {"pm1": 0.0}, {"pm1": 21.0})

    checked, flagged = AnomalyDetector().scan(readings)

    assert [record.value for record in flagged] == [21.0]
    assert flagged[0].previous_value == 4.0
    assert checked[0].pm1 == 0.0


def test_exactly_ratio_times_is_not_a_spike() -> None:
    readings = _newest_first({"pm25": 10.0}, {"pm25": 50.0})

    _, flagged = AnomalyDetector().scan(readings)

    assert flagged == []


def test_channels_are_independent() -> None:
    readings = _newest_first(
        {"pm1": 2.0, "pm25": 5.0, "pm10": 8.0},
        {"pm1": 2.5, "pm25": 90.0, "pm10": 9.0},
        {"pm1": 3.0, "pm25": 6.0, "pm10": 100.0},
    )

    checked, flagged = AnomalyDetector().scan(readings)

    assert [(record.channel, record.value) for record in flagged] == [
        ("pm10", 100.0),
        ("pm25", 90.0),
    ]
    newest, middle, oldest = checked
    assert (newest.pm1, newest.pm25, newest.pm10) == (3.0, 6.0, 0.0)
    assert (middle.pm1, middle.pm25, middle.pm10) == (2.5, 0.0, 9.0)
    assert (oldest.pm1, oldest.pm25, oldest.pm10) == (2.0, 5.0, 8.0)


def test_absent_channel_stays_absent() -> None:
    readings = _newest_first({"temperature": 20.0}, {"pm25": 3.0})

    checked, flagged = AnomalyDetector().scan(readings)

    assert flagged == []
    assert checked[1].pm25 is None
    assert checked[0].pm25 == 3.0


def test_custom_ratio() -> None:
    readings = _newest_first({"pm25": 10.0}, {"pm25": 25.0})

    _, flagged = AnomalyDetector(ratio=2.0).scan(readings)

    assert [record.value for record in flagged] == [25.0]


def test_scan_does_not_mutate_input() -> None:
    readings = _newest_first({"pm25": 10.0}, {"pm25": 90.0})

    AnomalyDetector().scan(readings)

    assert readings[0].pm25 == 90.0


def test_channel_state_rules() -> None:
    state = ChannelState()
    assert state.is_spike(1_000.0, 5.0) is False

    state.accept(0.0)
    assert state.last_valid is None

    state.accept(2.0)
    assert state.is_spike(10.0, 5.0) is False
    assert state.is_spike(10.1, 5.0) is True


def test_spike_is_logged(caplog) -> None:
    readings = _newest_first({"pm25": 1.0}, {"pm25": 9.0})

    with caplog.at_level(logging.INFO, logger="services.anomaly"):
        AnomalyDetector().scan(readings)

    records = [record for record in caplog.records if record.name == "services.anomaly"]
    assert records
    assert getattr(records[0], "channel", None) == "pm25"
