from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple


_RELAY_URL_ENV = "RELAY_URL"
_STATIONS_ENV = "WEATHER_STATIONS"
_TIMEOUT_ENV = "FETCH_TIMEOUT_SECONDS"
_RETRY_ENV = "FETCH_RETRY_COUNT"
_REFRESH_ENV = "REFRESH_INTERVAL_SECONDS"
_ANOMALY_RATIO_ENV = "ANOMALY_RATIO"
_RECENT_WINDOW_ENV = "RECENT_WINDOW_SECONDS"
_RECENT_LIMIT_ENV = "RECENT_EVENT_LIMIT"
_HISTORY_HOURS_ENV = "HISTORY_HOURS"
_DISCOVERY_LIMIT_ENV = "STATION_DISCOVERY_LIMIT"
_AUTO_REFRESH_ENV = "AUTO_REFRESH"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_RELAY_URL = "https://relay.samt.st"
DEFAULT_STATION = "55bb2db9b6b43291bc9ea64be226bf1dd0bbf60c71a7526c4f01ced3a2fc17f7"


@dataclass(frozen=True)
class Settings:
    relay_url: str
    stations: Tuple[str, ...]
    fetch_timeout: float
    fetch_retries: int
    refresh_interval: float
    anomaly_ratio: float
    recent_window: int
    recent_limit: int
    history_hours: int
    discovery_limit: int
    auto_refresh: bool
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_list_env(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    items = tuple(part.strip() for part in value.split(",") if part.strip())
    return items or default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_int(name: str, default: int, minimum: int = 1) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        relay_url=_read_str_env(_RELAY_URL_ENV, DEFAULT_RELAY_URL).rstrip("/"),
        stations=_read_list_env(_STATIONS_ENV, (DEFAULT_STATION,)),
        fetch_timeout=_read_positive_float(_TIMEOUT_ENV, 5.0),
        fetch_retries=_read_int(_RETRY_ENV, 2, minimum=0),
        refresh_interval=_read_positive_float(_REFRESH_ENV, 30.0),
        anomaly_ratio=_read_positive_float(_ANOMALY_RATIO_ENV, 5.0),
        recent_window=_read_int(_RECENT_WINDOW_ENV, 3600),
        recent_limit=_read_int(_RECENT_LIMIT_ENV, 200),
        history_hours=_read_int(_HISTORY_HOURS_ENV, 24),
        discovery_limit=_read_int(_DISCOVERY_LIMIT_ENV, 50),
        auto_refresh=_read_bool(_AUTO_REFRESH_ENV, True),
        log_level=_read_log_level("INFO"),
    )
