"""Relay query transport."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence

import httpx

from models.events import EventFilter, RawEvent

logger = logging.getLogger(__name__)


class RelayError(RuntimeError):
    """The relay could not be reached or answered with something unusable."""


class EventSource(Protocol):
    async def query(self, filters: Sequence[EventFilter]) -> List[RawEvent]:
        ...


def decode_events(payload: Any) -> List[RawEvent]:
    """Decode a JSON array of events, dropping entries that are not events."""
    if not isinstance(payload, list):
        raise RelayError("Relay response is not a list of events.")

    events: List[RawEvent] = []
    for index, item in enumerate(payload):
        try:
            events.append(RawEvent.from_payload(item))
        except (KeyError, TypeError, ValueError) as exc:
            event_id = item.get("id") if isinstance(item, dict) else None
            logger.warning(
                "Dropping malformed event at position %d",
                index,
                extra={"event_id": event_id, "reason": str(exc) or type(exc).__name__},
            )
    return events


class HttpRelayClient:
    """Queries a relay's HTTP gateway.

    ``POST {relay_url}/req`` with ``{"filters": [...]}``; the relay answers
    with the matching events for all filters as one JSON array.
    """

    def __init__(
        self,
        relay_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.relay_url = relay_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.relay_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "HttpRelayClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def query(self, filters: Sequence[EventFilter]) -> List[RawEvent]:
        body = {"filters": [query.to_payload() for query in filters]}
        try:
            response = await self._client.post("/req", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RelayError(
                f"Relay {self.relay_url} responded with status {exc.response.status_code}."
            ) from exc
        except httpx.HTTPError as exc:
            raise RelayError(f"Relay {self.relay_url} request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise RelayError(f"Relay {self.relay_url} returned invalid JSON.") from exc

        return decode_events(payload)
