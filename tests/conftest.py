"""Shared fixtures: a file-backed SQLite database per test."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from feed_entries.config import DatabaseConfig, SearchConfig
from feed_entries.search.index import SearchIndex
from feed_entries.storage.repository import EntryRepository, FeedRepository
from feed_entries.storage.session import create_engine_from_config, init_database, make_session_factory

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class RecordingSink:
    """Event sink that keeps published events in memory."""

    def __init__(self):
        self.events = []

    def publish(self, event):  # noqa: ANN001
        self.events.append(event)

    def kinds(self):
        return [event.kind.value for event in self.events]


@pytest.fixture
def engine(tmp_path):
    engine = create_engine_from_config(DatabaseConfig(url=f"sqlite:///{tmp_path / 'entries.db'}"))
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def index():
    return SearchIndex(SearchConfig())


@pytest.fixture
def entries(session_factory, index, sink):
    return EntryRepository(session_factory, index=index, events=sink, clock=lambda: NOW)


@pytest.fixture
def feeds(session_factory):
    return FeedRepository(session_factory)


@pytest.fixture
def feed(feeds):
    return feeds.add_feed(
        "https://example.com/rss",
        title="Example",
        webhook_url="https://hooks.example.com/in",
    )
