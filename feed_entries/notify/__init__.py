"""
Feed-scoped webhook notifications for entry lifecycle changes.
"""

from .dispatcher import DeliveryStats, NotificationDispatcher
from .events import EntryEvent, EventKind, EventSink
from .transport import WebhookTransport

__all__ = [
    "DeliveryStats",
    "EntryEvent",
    "EventKind",
    "EventSink",
    "NotificationDispatcher",
    "WebhookTransport",
]
