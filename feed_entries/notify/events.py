"""
Entry lifecycle events and the sink protocol mutations publish into.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from ..core.types import Entry


class EventKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DESTROYED = "destroyed"


@dataclass
class EntryEvent:
    """One entry lifecycle transition, addressed to its feed's subscriber.

    Attributes:
        kind: The observed transition
        entry_id: Identifier of the entry
        feed_id: Identifier of the owning feed (the notification scope)
        endpoint: Subscriber URL resolved from the feed, or None
        payload: ``{"entry": ...}`` snapshot taken at transition time
        occurred_at: When the transition was committed
    """

    kind: EventKind
    entry_id: int
    feed_id: int
    endpoint: str | None
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_entry(cls, kind: EventKind, entry: Entry) -> "EntryEvent":
        endpoint = entry.feed.webhook_url if entry.feed else None
        return cls(
            kind=kind,
            entry_id=entry.id,
            feed_id=entry.feed_id,
            endpoint=endpoint,
            payload={"entry": entry.as_dict()},
        )


class EventSink(Protocol):
    def publish(self, event: EntryEvent) -> None: ...
