"""
Background delivery of entry lifecycle events.

Mutations publish events into a bounded queue and return immediately;
worker threads deliver them to the feed's webhook. Events published while
the queue is full wait in an overflow buffer and are moved into the queue
as workers free slots, so an accepted event is never dropped. Delivery
failures are logged and counted, never raised back into the mutation and
never retried inline.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
import queue
import threading
from typing import Protocol

from ..config import NotifyConfig
from ..core.errors import NotificationDeliveryError
from ..logging_utils import log_event
from .events import EntryEvent
from .transport import WebhookTransport

_STOP = object()


class Transport(Protocol):
    def deliver(self, event: EntryEvent) -> int: ...


@dataclass
class DeliveryStats:
    """Counters collected by the dispatcher.

    Attributes:
        published: Events accepted by ``publish``
        delivered: Events acknowledged by the endpoint
        failed: Events that could not be delivered
        skipped: Events for feeds without an endpoint, or while disabled
        deferred: Events parked in the overflow buffer because the queue was full
    """

    published: int = 0
    delivered: int = 0
    failed: int = 0
    skipped: int = 0
    deferred: int = 0


class NotificationDispatcher:
    """Queue plus worker threads delivering :class:`EntryEvent` objects."""

    def __init__(
        self,
        cfg: NotifyConfig | None = None,
        transport: Transport | None = None,
        logger: logging.Logger | None = None,
    ):
        self.cfg = cfg or NotifyConfig()
        self.transport = transport or WebhookTransport(self.cfg)
        self.logger = logger or logging.getLogger("feed_entries.notify")
        self.stats = DeliveryStats()
        self._queue: queue.Queue = queue.Queue(maxsize=max(self.cfg.queue_size, 0))
        self._workers: list[threading.Thread] = []
        self._overflow: deque[EntryEvent] = deque()
        self._overflow_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._start_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return any(worker.is_alive() for worker in self._workers)

    def start(self) -> None:
        with self._start_lock:
            if self.running:
                return
            self._workers = [
                threading.Thread(
                    target=self._run,
                    name=f"feed-entries-notify-{idx}",
                    daemon=True,
                )
                for idx in range(max(self.cfg.workers, 1))
            ]
            for worker in self._workers:
                worker.start()

    def stop(self, drain: bool = True, timeout: float | None = None) -> None:
        """Stop the workers, optionally after delivering queued events."""
        if not self._workers:
            return
        if drain:
            self._queue.join()
        else:
            with self._overflow_lock:
                self._overflow.clear()
        for _ in self._workers:
            self._queue.put(_STOP)
        for worker in self._workers:
            worker.join(timeout)
        self._workers = []

    def join(self) -> None:
        """Block until every queued event has been processed."""
        self._queue.join()

    def publish(self, event: EntryEvent) -> None:
        """Queue ``event`` for delivery without waiting for the network."""
        if not self.cfg.enabled or not event.endpoint:
            self._count("skipped")
            log_event(
                self.logger,
                "Notification skipped",
                level=logging.DEBUG,
                event="notify_skipped",
                kind=event.kind.value,
                entry_id=event.entry_id,
                feed_id=event.feed_id,
            )
            return
        self.start()
        self._count("published")
        with self._overflow_lock:
            # Earlier deferred events keep their place ahead of this one.
            if not self._overflow:
                try:
                    self._queue.put_nowait(event)
                    return
                except queue.Full:
                    pass
            self._overflow.append(event)
        self._count("deferred")
        log_event(
            self.logger,
            "Notification queue full, event deferred",
            level=logging.DEBUG,
            event="notify_deferred",
            kind=event.kind.value,
            entry_id=event.entry_id,
            feed_id=event.feed_id,
        )

    def _refill(self) -> None:
        with self._overflow_lock:
            while self._overflow:
                try:
                    self._queue.put_nowait(self._overflow[0])
                except queue.Full:
                    return
                self._overflow.popleft()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._deliver(item)
            finally:
                # Refill before task_done so join() cannot return while
                # deferred events are still waiting.
                self._refill()
                self._queue.task_done()

    def _deliver(self, event: EntryEvent) -> None:
        try:
            status_code = self.transport.deliver(event)
        except NotificationDeliveryError as exc:
            self._count("failed")
            log_event(
                self.logger,
                "Notification delivery failed",
                level=logging.WARNING,
                event="notify_failed",
                kind=event.kind.value,
                entry_id=event.entry_id,
                feed_id=event.feed_id,
                endpoint=exc.endpoint,
                error=exc.reason,
            )
            return
        except Exception:  # noqa: BLE001
            self._count("failed")
            self.logger.exception(
                "Unexpected error delivering %s event for entry %s",
                event.kind.value,
                event.entry_id,
            )
            return
        self._count("delivered")
        log_event(
            self.logger,
            "Notification delivered",
            level=logging.DEBUG,
            event="notify_delivered",
            kind=event.kind.value,
            entry_id=event.entry_id,
            feed_id=event.feed_id,
            status_code=status_code,
        )

    def _count(self, name: str) -> None:
        with self._stats_lock:
            setattr(self.stats, name, getattr(self.stats, name) + 1)
