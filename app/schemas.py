"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.records import (
    BucketedSeries,
    FetchStatus,
    FlaggedReading,
    Reading,
    SensorInventory,
    StationMetadata,
    StationSnapshot,
)


class ApiModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReadingOut(ApiModel):
    """One deduplicated reading with all present channels."""

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
    extra: Dict[str, float] = Field(
        default_factory=dict, description="Channels the service does not recognise, by tag name."
    )
    sensor_models: Dict[str, str] = Field(default_factory=dict)
    source_event_id: str
    raw_event: Optional[Dict[str, Any]] = None

    @classmethod
    def from_domain(cls, reading: Reading) -> "ReadingOut":
        return cls(
            timestamp=reading.timestamp,
            temperature=reading.temperature,
            humidity=reading.humidity,
            pm1=reading.pm1,
            pm25=reading.pm25,
            pm10=reading.pm10,
            air_quality=reading.air_quality,
            pressure=reading.pressure,
            light=reading.light,
            rain=reading.rain,
            extra=dict(reading.extra),
            sensor_models=dict(reading.sensor_models),
            source_event_id=reading.source_event_id,
            raw_event=reading.raw_event,
        )


class FlaggedReadingOut(ApiModel):
    """A suppressed particulate value kept for audit."""

    sensor: str
    channel: str
    value: float
    previous_value: float
    timestamp: int
    event_id: str
    reason: str
    raw_event: Optional[Dict[str, Any]] = None

    @classmethod
    def from_domain(cls, flagged: FlaggedReading) -> "FlaggedReadingOut":
        return cls(
            sensor=flagged.sensor,
            channel=flagged.channel,
            value=flagged.value,
            previous_value=flagged.previous_value,
            timestamp=flagged.timestamp,
            event_id=flagged.event_id,
            reason=flagged.reason,
            raw_event=flagged.raw_event,
        )


class StationMetadataOut(ApiModel):
    pubkey: str
    name: str
    location: Optional[str] = None
    elevation_meters: Optional[float] = None
    declared_sensors: List[str] = Field(default_factory=list)
    updated_at: Optional[int] = None

    @classmethod
    def from_domain(cls, metadata: StationMetadata) -> "StationMetadataOut":
        return cls(
            pubkey=metadata.pubkey,
            name=metadata.name,
            location=metadata.location,
            elevation_meters=metadata.elevation_meters,
            declared_sensors=list(metadata.declared_sensors),
            updated_at=metadata.updated_at,
        )


class SensorInventoryOut(ApiModel):
    supported: List[str] = Field(default_factory=list)
    unsupported: List[str] = Field(default_factory=list)
    all: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, inventory: SensorInventory) -> "SensorInventoryOut":
        return cls(
            supported=sorted(inventory.supported),
            unsupported=sorted(inventory.unsupported),
            all=sorted(inventory.all),
        )


class WeatherResponse(ApiModel):
    """Latest derived view for a station plus the state of its last fetch."""

    station: str
    status: FetchStatus
    fetched_at: Optional[int] = None
    error: Optional[str] = None
    readings: List[ReadingOut] = Field(default_factory=list)
    flagged_readings: List[FlaggedReadingOut] = Field(default_factory=list)
    station_metadata: Optional[StationMetadataOut] = None
    detected_sensors: SensorInventoryOut = Field(default_factory=SensorInventoryOut)

    @classmethod
    def from_snapshot(cls, snapshot: StationSnapshot) -> "WeatherResponse":
        view = snapshot.view
        response = cls(
            station=snapshot.station,
            status=snapshot.status,
            fetched_at=snapshot.fetched_at,
            error=snapshot.error,
        )
        if view is None:
            return response
        response.readings = [ReadingOut.from_domain(reading) for reading in view.readings]
        response.flagged_readings = [
            FlaggedReadingOut.from_domain(flagged) for flagged in view.flagged_readings
        ]
        if view.station_metadata is not None:
            response.station_metadata = StationMetadataOut.from_domain(view.station_metadata)
        response.detected_sensors = SensorInventoryOut.from_domain(view.detected_sensors)
        return response


class ChartResponse(ApiModel):
    """A bucketed grid; ``None`` marks a slot without data."""

    station: str
    grid: str
    slot_count: int = Field(..., ge=1)
    slot_seconds: int = Field(..., ge=1)
    tolerance_seconds: int = Field(..., ge=0)
    slots: List[int]
    series: Dict[str, List[Optional[float]]] = Field(default_factory=dict)

    @classmethod
    def from_series(cls, station: str, bucketed: BucketedSeries) -> "ChartResponse":
        grid = bucketed.grid
        return cls(
            station=station,
            grid=grid.name,
            slot_count=grid.slot_count,
            slot_seconds=grid.slot_seconds,
            tolerance_seconds=grid.tolerance_seconds,
            slots=list(bucketed.slots),
            series={name: list(values) for name, values in bucketed.values.items()},
        )
