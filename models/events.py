"""Wire-level event and filter types exchanged with the relay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

READING_KIND = 4223
STATION_METADATA_KIND = 16158

Tag = Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RawEvent:
    """A signed event as delivered by the relay. Never mutated."""

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: Tuple[Tag, ...] = ()
    content: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RawEvent":
        """Build an event from its JSON object form.

        Raises ``KeyError``, ``TypeError`` or ``ValueError`` when the payload
        does not have the shape of an event.
        """
        if not isinstance(payload, dict):
            raise TypeError("Event payload must be a JSON object.")
        raw_tags = payload.get("tags") or []
        if not isinstance(raw_tags, list):
            raise TypeError("Event tags must be a list.")
        tags = tuple(
            tuple(str(part) for part in tag) for tag in raw_tags if isinstance(tag, list)
        )
        created_at = payload["created_at"]
        kind = payload["kind"]
        if isinstance(created_at, bool) or not isinstance(created_at, int):
            raise ValueError("Event created_at must be an integer.")
        if isinstance(kind, bool) or not isinstance(kind, int):
            raise ValueError("Event kind must be an integer.")
        return cls(
            id=str(payload["id"]),
            pubkey=str(payload["pubkey"]),
            created_at=created_at,
            kind=kind,
            tags=tags,
            content=str(payload.get("content") or ""),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
        }


@dataclass(frozen=True, slots=True)
class EventFilter:
    """One relay subscription filter."""

    kinds: Tuple[int, ...]
    authors: Optional[Tuple[str, ...]] = None
    since: Optional[int] = None
    until: Optional[int] = None
    limit: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kinds": list(self.kinds)}
        if self.authors is not None:
            payload["authors"] = list(self.authors)
        if self.since is not None:
            payload["since"] = self.since
        if self.until is not None:
            payload["until"] = self.until
        if self.limit is not None:
            payload["limit"] = self.limit
        return payload


def events_by_kind(events: List[RawEvent]) -> Dict[int, List[RawEvent]]:
    """Group events by kind, keeping their relative order."""
    grouped: Dict[int, List[RawEvent]] = {}
    for event in events:
        grouped.setdefault(event.kind, []).append(event)
    return grouped
