"""Tests for entry ingestion, deduplication, listing and lifecycle events."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import threading

from sqlalchemy.orm import Session, sessionmaker

from feed_entries.core.types import Annotation, EntryOrder, SourceItem
from feed_entries.storage.repository import EntryRepository

from conftest import NOW


def _item(url="https://example.com/a", **overrides):
    data = {"url": url, "title": "Title", "summary": "<p>Body</p>", "entry_id": "e1"}
    data.update(overrides)
    return SourceItem(**data)


def test_add_applies_defaults(entries, feed):
    result = entries.add(
        feed.id,
        SourceItem(url="http://x", title="", summary="body", entry_id="e1", published=None),
    )
    assert result.created
    entry = result.entry
    assert entry.title == "untitled"
    assert entry.published_at == NOW
    assert entry.created_at == NOW
    assert entry.enriched_at is None
    assert entry.feed.url == feed.url


def test_add_normalizes_categories(entries, feed):
    result = entries.add(feed.id, _item(categories=["Tech", None, "", " NEWS "]))
    assert result.entry.categories == ["tech", "news"]


def test_add_keeps_published_timestamp_in_utc(entries, feed):
    published = datetime(2026, 2, 1, 9, 30, tzinfo=timezone(timedelta(hours=2)))
    result = entries.add(feed.id, _item(published=published))
    stored = entries.get(result.entry.id)
    assert stored.published_at == published
    assert stored.published_at.tzinfo is not None


def test_duplicate_url_is_not_ingested(entries, feed, feeds, sink):
    first = entries.add(feed.id, _item())
    second = entries.add(feed.id, _item(title="Other title"))

    assert first.created
    assert tuple(second) == (False, None)
    assert entries.count() == 1
    assert feeds.get(feed.id).entries_count == 1
    assert sink.kinds() == ["created"]


def test_duplicate_detection_uses_canonical_url(entries, feed):
    assert entries.add(feed.id, _item("https://Example.com/a#comments")).created
    assert not entries.add(feed.id, _item(" https://example.com/a ")).created
    assert entries.find_by_url("HTTPS://EXAMPLE.COM/a").url == "https://example.com/a"


def test_duplicate_across_feeds(entries, feed, feeds):
    other = feeds.add_feed("https://other.example.com/rss")
    assert entries.add(feed.id, _item()).created
    assert tuple(entries.add(other.id, _item())) == (False, None)


def test_invalid_items_are_not_ingested(entries, feed, sink):
    assert tuple(entries.add(feed.id, _item(url=None))) == (False, None)
    assert tuple(entries.add(feed.id, _item(url="  "))) == (False, None)
    assert tuple(entries.add(feed.id + 100, _item())) == (False, None)
    assert entries.count() == 0
    assert sink.events == []


def test_concurrent_adds_of_same_url_create_one_entry(entries, feed, feeds):
    barrier = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        result = entries.add(feed.id, _item())
        with lock:
            results.append(result)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(1 for result in results if result.created) == 1
    assert all(result.entry is None for result in results if not result.created)
    assert entries.count() == 1
    assert feeds.get(feed.id).entries_count == 1


class _RacingSession(Session):
    """Session whose duplicate pre-check never sees existing rows."""

    def scalar(self, statement, *args, **kwargs):  # noqa: ANN001
        sql = str(statement)
        if sql.startswith("SELECT entries.id") and "entries.url" in sql:
            return None
        return super().scalar(statement, *args, **kwargs)


def test_unique_constraint_violation_maps_to_not_created(engine, entries, feed, feeds, sink):
    assert entries.add(feed.id, _item()).created
    racing = EntryRepository(
        sessionmaker(bind=engine, class_=_RacingSession, autoflush=False, expire_on_commit=False),
        events=sink,
    )

    assert tuple(racing.add(feed.id, _item())) == (False, None)
    assert entries.count() == 1
    assert feeds.get(feed.id).entries_count == 1
    assert sink.kinds() == ["created"]


def test_created_event_carries_entry_payload_and_feed_endpoint(entries, feed, sink):
    result = entries.add(feed.id, _item())
    (event,) = sink.events
    assert event.kind.value == "created"
    assert event.feed_id == feed.id
    assert event.endpoint == "https://hooks.example.com/in"
    assert list(event.payload) == ["entry"]
    assert event.payload["entry"]["id"] == result.entry.id
    assert event.payload["entry"]["url"] == "https://example.com/a"


def test_list_entries_orders_newest_first_by_default(entries, feed):
    for day in (1, 3, 2):
        entries.add(
            feed.id,
            _item(f"https://example.com/{day}", published=datetime(2026, 1, day, tzinfo=timezone.utc)),
        )

    newest = [entry.url for entry in entries.list_entries()]
    oldest = [entry.url for entry in entries.list_entries(order=EntryOrder.OLDEST_FIRST)]

    assert newest == ["https://example.com/3", "https://example.com/2", "https://example.com/1"]
    assert oldest == list(reversed(newest))
    assert len(entries.list_entries(limit=2)) == 2


def test_list_entries_filters_by_feed(entries, feed, feeds):
    other = feeds.add_feed("https://other.example.com/rss")
    entries.add(feed.id, _item("https://example.com/1"))
    entries.add(other.id, _item("https://example.com/2"))

    listed = entries.list_entries(feed_id=other.id)
    assert [entry.url for entry in listed] == ["https://example.com/2"]
    assert listed[0].feed_url == "https://other.example.com/rss"


def test_latest_returns_entries_from_last_day(entries, feed):
    entries.add(feed.id, _item("https://example.com/new", published=NOW - timedelta(hours=2)))
    entries.add(feed.id, _item("https://example.com/old", published=NOW - timedelta(days=3)))

    assert [entry.url for entry in entries.latest()] == ["https://example.com/new"]


def test_random_sample_is_bounded(entries, feed):
    for idx in range(5):
        entries.add(feed.id, _item(f"https://example.com/{idx}"))

    sample = entries.random_sample(3)
    assert len(sample) == 3
    assert len({entry.id for entry in sample}) == 3


def test_save_enrichment_persists_all_fields_and_emits_one_update(entries, feed, sink):
    entry = entries.add(feed.id, _item()).entry
    enriched_at = NOW + timedelta(minutes=5)

    saved = entries.save_enrichment(
        entry.id,
        [Annotation(id=1, uri="https://dbpedia.org/A", spot="a", label="A", confidence=0.9)],
        {"score": 0.5, "type": "positive"},
        enriched_at,
    )

    assert saved.enriched_at == enriched_at
    stored = entries.get(entry.id)
    assert stored.sentiment == {"score": 0.5, "type": "positive"}
    assert [a.uri for a in stored.annotations] == ["https://dbpedia.org/A"]
    assert [e.id for e in entries.enriched()] == [entry.id]
    assert sink.kinds() == ["created", "updated"]


def test_destroy_removes_entry_index_document_and_counter(entries, feed, feeds, index, sink):
    entry = entries.add(feed.id, _item()).entry
    assert entry.id in index

    assert entries.destroy(entry.id)
    assert entries.get(entry.id) is None
    assert entry.id not in index
    assert feeds.get(feed.id).entries_count == 0
    assert sink.kinds() == ["created", "destroyed"]
    assert not entries.destroy(entry.id)


def test_search_joins_feed_and_highlights(entries, feed):
    entries.add(feed.id, _item("https://example.com/a", title="Category news", summary=None))
    entries.add(feed.id, _item("https://example.com/b", title="Weather", summary="Sunny"))

    results = entries.search("cat")
    assert [result.entry.title for result in results] == ["Category news"]
    assert results[0].feed.url == feed.url
    assert results[0].highlights["title"] == "<b>Category</b> news"
    assert entries.search("giraffe") == []


def test_search_failure_returns_empty_list(entries, feed):
    entries.add(feed.id, _item())
    assert entries.search(None) == []


def test_reindex_rebuilds_from_storage(entries, feed, index):
    entries.add(feed.id, _item("https://example.com/a", title="Alpha"))
    entries.add(feed.id, _item("https://example.com/b", title="Beta"))
    index.clear()
    assert entries.search("alpha") == []

    assert entries.reindex(batch_size=1) == 2
    assert [result.entry.title for result in entries.search("alpha")] == ["Alpha"]


def test_add_feed_returns_existing_feed(feeds, feed):
    again = feeds.add_feed("https://example.com/rss", title="Ignored")
    assert again.id == feed.id
    assert feeds.set_webhook(feed.id, None).webhook_url is None
