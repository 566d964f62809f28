from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.monitor import build_default_monitor
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    monitor = build_default_monitor()
    refresher: asyncio.Task[None] | None = None
    if settings.auto_refresh and settings.stations:
        refresher = asyncio.create_task(
            monitor.run_periodic(settings.stations, settings.refresh_interval)
        )
        logger.info(
            "Periodic refresh started for %d station(s)",
            len(settings.stations),
        )
    try:
        yield
    finally:
        if refresher is not None:
            refresher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await refresher
        await monitor.aclose()
        build_default_monitor.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Relay Weather",
        description="Cleans, flags and buckets weather-station readings published to a relay.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
