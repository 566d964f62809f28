"""HTTP route definitions for the service."""

from __future__ import annotations

import time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import ChartResponse, StationMetadataOut, WeatherResponse
from models.records import FetchStatus, StationSnapshot
from services.bucketer import GRIDS, LAST_HOUR_GRID, bucket_readings, split_recent
from services.fetcher import FetchError
from services.monitor import StationMonitor, build_default_monitor
from settings import get_settings

router = APIRouter()


def get_monitor() -> StationMonitor:
    return build_default_monitor()


def _raise_if_failed(snapshot: StationSnapshot) -> None:
    if snapshot.status is FetchStatus.failed and snapshot.view is None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=snapshot.error or "Fetching station data failed.",
        )


async def _load_snapshot(monitor: StationMonitor, pubkey: str) -> StationSnapshot:
    snapshot = await monitor.ensure_fresh(pubkey, max_age=get_settings().refresh_interval)
    _raise_if_failed(snapshot)
    return snapshot


@router.get(
    "/stations",
    response_model=List[StationMetadataOut],
    summary="List stations that have published metadata on the relay.",
)
async def list_stations(
    monitor: StationMonitor = Depends(get_monitor),
) -> List[StationMetadataOut]:
    limit = get_settings().discovery_limit
    try:
        stations = await monitor.orchestrator.discover_stations(limit=limit)
    except FetchError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
    return [StationMetadataOut.from_domain(station) for station in stations]


@router.get(
    "/stations/{pubkey}/weather",
    response_model=WeatherResponse,
    summary="Latest readings, flagged values, metadata and detected sensors.",
)
async def get_weather(
    pubkey: str,
    monitor: StationMonitor = Depends(get_monitor),
) -> WeatherResponse:
    snapshot = await _load_snapshot(monitor, pubkey)
    return WeatherResponse.from_snapshot(snapshot)


@router.post(
    "/stations/{pubkey}/refresh",
    response_model=WeatherResponse,
    summary="Run a fetch cycle now, joining one already in flight unless forced.",
)
async def refresh_station(
    pubkey: str,
    force: bool = Query(False, description="Supersede an in-flight fetch cycle."),
    monitor: StationMonitor = Depends(get_monitor),
) -> WeatherResponse:
    snapshot = await monitor.refresh(pubkey, force=force)
    _raise_if_failed(snapshot)
    return WeatherResponse.from_snapshot(snapshot)


@router.get(
    "/stations/{pubkey}/charts/{grid_name}",
    response_model=ChartResponse,
    summary="Readings bucketed onto a fixed display grid.",
)
async def get_chart(
    pubkey: str,
    grid_name: str,
    channel: Optional[List[str]] = Query(None, description="Restrict to these channels."),
    monitor: StationMonitor = Depends(get_monitor),
) -> ChartResponse:
    grid = GRIDS.get(grid_name)
    if grid is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown grid {grid_name!r}; expected one of {sorted(GRIDS)}.",
        )

    snapshot = await _load_snapshot(monitor, pubkey)
    readings = list(snapshot.view.readings) if snapshot.view is not None else []
    now = int(time.time())
    if grid is LAST_HOUR_GRID:
        readings = split_recent(readings, now, window=get_settings().recent_window)

    bucketed = bucket_readings(
        readings,
        grid,
        now=now,
        channels=channel,
        vocabulary=monitor.orchestrator.pipeline.channels,
    )
    return ChartResponse.from_series(pubkey, bucketed)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
