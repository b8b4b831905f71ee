"""Tests for webhook delivery and the background notification dispatcher."""

from __future__ import annotations

import json
import threading

import httpx
import pytest

from feed_entries.config import NotifyConfig
from feed_entries.core.errors import NotificationDeliveryError
from feed_entries.core.types import Entry, Feed, SourceItem
from feed_entries.notify.dispatcher import NotificationDispatcher
from feed_entries.notify.events import EntryEvent, EventKind
from feed_entries.notify.transport import WebhookTransport
from feed_entries.storage.repository import EntryRepository


def _event(endpoint="https://hooks.example.com/in", kind=EventKind.CREATED):
    feed = Feed(id=3, url="https://example.com/rss", webhook_url=endpoint)
    entry = Entry(id=9, feed_id=3, title="Title", url="https://example.com/a", feed=feed)
    return EntryEvent.for_entry(kind, entry)


class _StubTransport:
    def __init__(self, fail=False):
        self.fail = fail
        self.events = []
        self._lock = threading.Lock()

    def deliver(self, event):  # noqa: ANN001
        with self._lock:
            self.events.append(event)
        if self.fail:
            raise NotificationDeliveryError(event.endpoint, "HTTP 500", status_code=500)
        return 204


def test_event_payload_wraps_entry_snapshot():
    event = _event()
    assert event.feed_id == 3
    assert event.endpoint == "https://hooks.example.com/in"
    assert event.payload["entry"]["title"] == "Title"
    assert set(event.payload) == {"entry"}


def test_webhook_transport_posts_entry_json():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["kind"] = request.headers["X-Entry-Event"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(204)

    transport = WebhookTransport(NotifyConfig(), transport=httpx.MockTransport(handler))
    assert transport.deliver(_event(kind=EventKind.UPDATED)) == 204

    assert seen["url"] == "https://hooks.example.com/in"
    assert seen["kind"] == "updated"
    assert seen["body"]["entry"]["id"] == 9


def test_webhook_transport_raises_on_error_status():
    transport = WebhookTransport(
        NotifyConfig(), transport=httpx.MockTransport(lambda request: httpx.Response(500))
    )
    with pytest.raises(NotificationDeliveryError) as excinfo:
        transport.deliver(_event())
    assert excinfo.value.status_code == 500


def test_webhook_transport_raises_on_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    transport = WebhookTransport(NotifyConfig(), transport=httpx.MockTransport(handler))
    with pytest.raises(NotificationDeliveryError, match="ReadTimeout"):
        transport.deliver(_event())


def test_dispatcher_delivers_in_background():
    transport = _StubTransport()
    dispatcher = NotificationDispatcher(NotifyConfig(workers=2), transport=transport)

    for _ in range(5):
        dispatcher.publish(_event())
    dispatcher.stop(drain=True)

    assert len(transport.events) == 5
    assert dispatcher.stats.published == 5
    assert dispatcher.stats.delivered == 5
    assert not dispatcher.running


def test_dispatcher_counts_failures_without_raising():
    dispatcher = NotificationDispatcher(NotifyConfig(), transport=_StubTransport(fail=True))

    dispatcher.publish(_event())
    dispatcher.join()

    assert dispatcher.stats.failed == 1
    assert dispatcher.stats.delivered == 0
    dispatcher.stop()


def test_dispatcher_skips_feeds_without_endpoint_and_when_disabled():
    transport = _StubTransport()
    dispatcher = NotificationDispatcher(NotifyConfig(), transport=transport)
    dispatcher.publish(_event(endpoint=None))

    disabled = NotificationDispatcher(NotifyConfig(enabled=False), transport=transport)
    disabled.publish(_event())

    assert dispatcher.stats.skipped == 1
    assert disabled.stats.skipped == 1
    assert transport.events == []
    assert not dispatcher.running


def test_dispatcher_defers_events_when_queue_is_full():
    started = threading.Event()
    release = threading.Event()

    class _BlockingTransport(_StubTransport):
        def deliver(self, event):  # noqa: ANN001
            started.set()
            release.wait(5)
            return super().deliver(event)

    transport = _BlockingTransport()
    dispatcher = NotificationDispatcher(NotifyConfig(workers=1, queue_size=1), transport=transport)

    first = _event()
    dispatcher.publish(first)
    assert started.wait(5)
    later = [_event(kind=kind) for kind in (EventKind.CREATED, EventKind.UPDATED, EventKind.DESTROYED)]
    for event in later:
        dispatcher.publish(event)
    release.set()
    dispatcher.stop(drain=True)

    assert transport.events == [first, *later]
    assert dispatcher.stats.published == 4
    assert dispatcher.stats.delivered == 4
    assert dispatcher.stats.deferred == 2
    assert dispatcher.stats.failed == 0


def test_ingestion_burst_beyond_queue_size_notifies_every_entry(session_factory, index, feed):
    release = threading.Event()

    class _SlowTransport(_StubTransport):
        def deliver(self, event):  # noqa: ANN001
            release.wait(5)
            return super().deliver(event)

    transport = _SlowTransport()
    dispatcher = NotificationDispatcher(NotifyConfig(workers=1, queue_size=2), transport=transport)
    entries = EntryRepository(session_factory, index=index, events=dispatcher)

    created = [
        entries.add(feed.id, SourceItem(url=f"https://example.com/{n}", title=f"Item {n}")).entry.id
        for n in range(6)
    ]
    release.set()
    dispatcher.stop(drain=True)

    assert [event.entry_id for event in transport.events] == created
    assert dispatcher.stats.delivered == 6


def test_ingestion_notifies_feed_webhook_once(session_factory, index, feed):
    received = []

    def handler(request):
        received.append((str(request.url), request.headers["X-Entry-Event"], json.loads(request.content)))
        return httpx.Response(200)

    cfg = NotifyConfig()
    dispatcher = NotificationDispatcher(
        cfg, transport=WebhookTransport(cfg, transport=httpx.MockTransport(handler))
    )
    entries = EntryRepository(session_factory, index=index, events=dispatcher)

    created = entries.add(feed.id, SourceItem(url="https://example.com/a", title="Hello"))
    entries.add(feed.id, SourceItem(url="https://example.com/a", title="Again"))
    dispatcher.stop(drain=True)

    assert len(received) == 1
    url, kind, body = received[0]
    assert url == "https://hooks.example.com/in"
    assert kind == "created"
    assert body["entry"]["id"] == created.entry.id


def test_delivery_failure_does_not_affect_entry(session_factory, index, feed):
    cfg = NotifyConfig()
    dispatcher = NotificationDispatcher(
        cfg,
        transport=WebhookTransport(cfg, transport=httpx.MockTransport(lambda request: httpx.Response(502))),
    )
    entries = EntryRepository(session_factory, index=index, events=dispatcher)

    result = entries.add(feed.id, SourceItem(url="https://example.com/a", title="Hello"))
    dispatcher.stop(drain=True)

    assert result.created
    assert entries.get(result.entry.id) is not None
    assert dispatcher.stats.failed == 1
