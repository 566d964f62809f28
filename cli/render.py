from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import typer

from models.channels import channel_label

_READING_KEYS = (
    "temperature",
    "humidity",
    "pm1",
    "pm25",
    "pm10",
    "airQuality",
    "pressure",
    "light",
    "rain",
)
_GAP = "-"


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def format_clock(timestamp: Optional[int]) -> str:
    if timestamp is None:
        return "never"
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%SZ")


def relative_time(timestamp: int, now: int) -> str:
    diff = max(0, now - timestamp)
    if diff < 60:
        amount, unit = diff, "second"
    elif diff < 3600:
        amount, unit = diff // 60, "minute"
    elif diff < 86400:
        amount, unit = diff // 3600, "hour"
    else:
        amount, unit = diff // 86400, "day"
    return f"{amount} {unit}{'' if amount == 1 else 's'} ago"


def _reading_channels(reading: Dict[str, Any]) -> List[tuple[str, Any]]:
    pairs = []
    for key in _READING_KEYS:
        value = reading.get(key)
        if value is not None:
            pairs.append((key, value))
    for key, value in sorted((reading.get("extra") or {}).items()):
        pairs.append((key, value))
    return pairs


def _label(key: str) -> str:
    return channel_label("air_quality" if key == "airQuality" else key)


def render_stations(stations: List[Dict[str, Any]]) -> None:
    echo_heading("Stations")
    if not stations:
        typer.echo("No stations found.")
        return
    for station in stations:
        details = [station.get("name") or station.get("pubkey")]
        if station.get("location"):
            details.append(f"@ {station['location']}")
        if station.get("elevationMeters") is not None:
            details.append(f"{station['elevationMeters']} m")
        typer.echo(f"  - {station.get('pubkey')}: {' '.join(str(part) for part in details)}")
        sensors = station.get("declaredSensors") or []
        if sensors:
            typer.echo(f"      sensors: {', '.join(sensors)}")


def render_weather(payload: Dict[str, Any], now: Optional[int] = None) -> None:
    now = now if now is not None else int(datetime.now(timezone.utc).timestamp())
    metadata = payload.get("stationMetadata") or {}

    echo_heading("Station")
    echo_key_values(
        [
            ("station", payload.get("station")),
            ("name", metadata.get("name", "unknown")),
            ("status", payload.get("status")),
            ("fetched_at", format_clock(payload.get("fetchedAt"))),
        ]
    )
    if payload.get("error"):
        typer.secho(f"last error: {payload['error']}", fg=typer.colors.YELLOW)

    readings = payload.get("readings") or []
    typer.echo()
    echo_heading("Current Conditions")
    if readings:
        latest = readings[0]
        typer.echo(
            f"updated {relative_time(latest['timestamp'], now)} ({format_clock(latest['timestamp'])})"
        )
        for key, value in _reading_channels(latest):
            typer.echo(f"  {_label(key)}: {value}")
    else:
        typer.echo("No weather data available.")

    sensors = payload.get("detectedSensors") or {}
    unsupported = sensors.get("unsupported") or []
    typer.echo()
    echo_heading("Detected Sensors")
    typer.echo(f"supported: {', '.join(sensors.get('supported') or []) or 'none'}")
    if unsupported:
        typer.secho(
            f"unsupported: {', '.join(unsupported)} (not yet displayed by this service)",
            fg=typer.colors.YELLOW,
        )

    flagged = payload.get("flaggedReadings") or []
    typer.echo()
    echo_heading("Flagged Readings")
    if flagged:
        for record in flagged:
            typer.echo(
                f"  - {format_clock(record.get('timestamp'))} {record.get('sensor')}="
                f"{record.get('value')}: {record.get('reason')}"
            )
    else:
        typer.echo("No flagged readings.")


def render_chart(payload: Dict[str, Any]) -> None:
    echo_heading(f"Chart {payload.get('grid')} for {payload.get('station')}")
    slots = payload.get("slots") or []
    series = payload.get("series") or {}
    if not series:
        typer.echo("No historical data available yet.")
        return

    names = list(series)
    typer.echo("  ".join(["time    "] + [f"{_label(name):>12}" for name in names]))
    for index, slot in enumerate(slots):
        clock = datetime.fromtimestamp(slot, tz=timezone.utc).strftime("%H:%M   ")
        cells = []
        for name in names:
            value = series[name][index]
            cells.append(f"{_GAP if value is None else f'{value:.1f}':>12}")
        typer.echo("  ".join([clock] + cells))
