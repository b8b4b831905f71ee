"""
Entry and feed persistence.

``EntryRepository`` is the only way entries are created, enriched or
destroyed. After every committed transition it synchronizes the search
index and publishes exactly one lifecycle event; neither step can undo or
fail the committed mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Callable, Iterable

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, sessionmaker

from ..core.dedup import canonical_url
from ..core.errors import DuplicateEntryError, EntryValidationError, SearchIndexError
from ..core.types import AddResult, Annotation, Entry, EntryOrder, Feed, SourceItem
from ..logging_utils import log_event
from ..notify.events import EntryEvent, EventKind, EventSink
from ..search.index import SearchIndex
from .models import EntryRow, FeedRow

MAX_ROWS_LIMIT = 1_000
UNTITLED = "untitled"
LATEST_WINDOW = timedelta(hours=24)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SearchResult:
    """A search hit joined with its entry and owning feed."""

    entry: Entry
    rank: float
    highlights: dict[str, str] = field(default_factory=dict)

    @property
    def feed(self) -> Feed | None:
        return self.entry.feed


class FeedRepository:
    """Minimal feed store: registration, lookup and webhook configuration."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def add_feed(self, url: str, title: str | None = None, webhook_url: str | None = None) -> Feed:
        """Register a feed, returning the existing one when the url is known."""
        url = url.strip()
        if not url:
            raise EntryValidationError("Feed url is required")
        with self._session_factory() as session:
            existing = session.scalar(select(FeedRow).where(FeedRow.url == url))
            if existing is not None:
                return _feed_entity(existing)
            row = FeedRow(url=url, title=title, webhook_url=webhook_url, entries_count=0)
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                existing = session.scalar(select(FeedRow).where(FeedRow.url == url))
                if existing is None:
                    raise
                return _feed_entity(existing)
            return _feed_entity(row)

    def get(self, feed_id: int) -> Feed | None:
        with self._session_factory() as session:
            row = session.get(FeedRow, feed_id)
            return _feed_entity(row) if row else None

    def find_by_url(self, url: str) -> Feed | None:
        with self._session_factory() as session:
            row = session.scalar(select(FeedRow).where(FeedRow.url == url.strip()))
            return _feed_entity(row) if row else None

    def set_webhook(self, feed_id: int, webhook_url: str | None) -> Feed:
        with self._session_factory() as session:
            row = session.get(FeedRow, feed_id)
            if row is None:
                raise EntryValidationError(f"Feed {feed_id} not found")
            row.webhook_url = webhook_url
            session.commit()
            return _feed_entity(row)


class EntryRepository:
    """Durable entry store with URL deduplication.

    Args:
        session_factory: SQLAlchemy session factory
        index: Search index kept in sync after each commit
        events: Sink receiving one lifecycle event per committed mutation
        logger: Logger for ingestion and sync events
        clock: Returns the current time (UTC); injectable for tests
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        index: SearchIndex | None = None,
        events: EventSink | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self.index = index
        self.events = events
        self.logger = logger or logging.getLogger("feed_entries.storage")
        self._clock = clock

    def add(self, feed_id: int, item: SourceItem) -> AddResult:
        """Ingest ``item`` into feed ``feed_id`` unless its url is known.

        Duplicates and invalid items (no url, unknown feed) both return
        ``AddResult(False, None)``; a unique-constraint violation raised by a
        concurrent insert of the same url is mapped to the same result.
        """
        try:
            entry = self._insert(feed_id, item)
        except DuplicateEntryError as exc:
            log_event(
                self.logger,
                "Entry skipped: duplicate url",
                level=logging.DEBUG,
                event="entry_duplicate",
                feed_id=feed_id,
                url=exc.url,
            )
            return AddResult(False, None)
        except EntryValidationError as exc:
            log_event(
                self.logger,
                "Entry rejected",
                level=logging.WARNING,
                event="entry_invalid",
                feed_id=feed_id,
                external_id=item.entry_id,
                error=str(exc),
            )
            return AddResult(False, None)

        log_event(
            self.logger,
            "Entry created",
            level=logging.DEBUG,
            event="entry_created",
            entry_id=entry.id,
            feed_id=feed_id,
            url=entry.url,
        )
        self._after_commit(EventKind.CREATED, entry)
        return AddResult(True, entry)

    def _insert(self, feed_id: int, item: SourceItem) -> Entry:
        url = canonical_url(item.url)
        if url is None:
            raise EntryValidationError("Entry url is required")

        with self._session_factory() as session:
            if session.scalar(select(EntryRow.id).where(EntryRow.url == url)) is not None:
                raise DuplicateEntryError(url)
            feed_row = session.get(FeedRow, feed_id)
            if feed_row is None:
                raise EntryValidationError(f"Feed {feed_id} not found")

            now = self._clock()
            row = EntryRow(
                feed_id=feed_id,
                title=_title_or_default(item.title),
                body=item.summary,
                url=url,
                external_id=item.entry_id,
                categories=_normalize_categories(item.categories),
                published_at=_to_utc(item.published or now),
                annotations=None,
                sentiment=None,
                enriched_at=None,
                created_at=_to_utc(now),
            )
            session.add(row)
            try:
                session.flush()
                session.execute(
                    update(FeedRow)
                    .where(FeedRow.id == feed_id)
                    .values(entries_count=FeedRow.entries_count + 1)
                )
                session.commit()
            except IntegrityError as exc:
                # A concurrent insert of the same url won the unique constraint.
                session.rollback()
                raise DuplicateEntryError(url) from exc

            session.refresh(feed_row)
            return _entry_entity(row, feed_row)

    def get(self, entry_id: int) -> Entry | None:
        with self._session_factory() as session:
            row = session.scalar(
                select(EntryRow).options(joinedload(EntryRow.feed)).where(EntryRow.id == entry_id)
            )
            return _entry_entity(row, row.feed) if row else None

    def find_by_url(self, url: str) -> Entry | None:
        canonical = canonical_url(url)
        if canonical is None:
            return None
        with self._session_factory() as session:
            row = session.scalar(
                select(EntryRow).options(joinedload(EntryRow.feed)).where(EntryRow.url == canonical)
            )
            return _entry_entity(row, row.feed) if row else None

    def list_entries(
        self,
        feed_id: int | None = None,
        order: EntryOrder = EntryOrder.NEWEST_FIRST,
        enriched_only: bool = False,
        unenriched_only: bool = False,
        since: datetime | None = None,
        limit: int | None = MAX_ROWS_LIMIT,
    ) -> list[Entry]:
        """List entries with explicit ordering (newest published first by default)."""
        stmt = select(EntryRow).options(joinedload(EntryRow.feed))
        if feed_id is not None:
            stmt = stmt.where(EntryRow.feed_id == feed_id)
        if enriched_only:
            stmt = stmt.where(EntryRow.enriched_at.is_not(None))
        if unenriched_only:
            stmt = stmt.where(EntryRow.enriched_at.is_(None))
        if since is not None:
            stmt = stmt.where(EntryRow.published_at >= _to_utc(since))
        stmt = stmt.order_by(*_order_clauses(order))
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session_factory() as session:
            rows = session.scalars(stmt).all()
            return [_entry_entity(row, row.feed) for row in rows]

    def enriched(self, feed_id: int | None = None, order: EntryOrder = EntryOrder.NEWEST_FIRST,
                 limit: int | None = MAX_ROWS_LIMIT) -> list[Entry]:
        return self.list_entries(feed_id=feed_id, order=order, enriched_only=True, limit=limit)

    def latest(self, feed_id: int | None = None, order: EntryOrder = EntryOrder.NEWEST_FIRST,
               limit: int | None = MAX_ROWS_LIMIT) -> list[Entry]:
        """Entries published within the last 24 hours."""
        since = self._clock() - LATEST_WINDOW
        return self.list_entries(feed_id=feed_id, order=order, since=since, limit=limit)

    def random_sample(self, size: int, feed_id: int | None = None) -> list[Entry]:
        return self.list_entries(feed_id=feed_id, order=EntryOrder.RANDOM, limit=size)

    def count(self, feed_id: int | None = None) -> int:
        stmt = select(func.count(EntryRow.id))
        if feed_id is not None:
            stmt = stmt.where(EntryRow.feed_id == feed_id)
        with self._session_factory() as session:
            return int(session.scalar(stmt) or 0)

    def save_enrichment(
        self,
        entry_id: int,
        annotations: list[Annotation],
        sentiment: dict[str, Any],
        enriched_at: datetime | None = None,
    ) -> Entry:
        """Persist annotations, sentiment and ``enriched_at`` in one transaction.

        Emits a single "updated" event for the combined change.
        """
        if sentiment is None:
            raise EntryValidationError("Sentiment is required to mark an entry enriched")
        with self._session_factory() as session:
            row = session.scalar(
                select(EntryRow).options(joinedload(EntryRow.feed)).where(EntryRow.id == entry_id)
            )
            if row is None:
                raise EntryValidationError(f"Entry {entry_id} not found")
            row.annotations = [annotation.to_dict() for annotation in annotations]
            row.sentiment = sentiment
            row.enriched_at = _to_utc(enriched_at or self._clock())
            session.commit()
            entry = _entry_entity(row, row.feed)

        # Enrichment never changes title, body or url, so the index is left alone.
        self._after_commit(EventKind.UPDATED, entry, reindex=False)
        return entry

    def destroy(self, entry_id: int) -> bool:
        """Delete an entry, decrement its feed counter and drop it from the index."""
        with self._session_factory() as session:
            row = session.scalar(
                select(EntryRow).options(joinedload(EntryRow.feed)).where(EntryRow.id == entry_id)
            )
            if row is None:
                return False
            entry = _entry_entity(row, row.feed)
            feed_id = row.feed_id
            session.delete(row)
            session.execute(
                update(FeedRow)
                .where(FeedRow.id == feed_id)
                .values(entries_count=case((FeedRow.entries_count > 0, FeedRow.entries_count - 1), else_=0))
            )
            session.commit()

        if entry.feed is not None:
            entry.feed.entries_count = max(entry.feed.entries_count - 1, 0)
        if self.index is not None:
            self.index.remove(entry.id)
        self._emit(EventKind.DESTROYED, entry)
        return True

    def search(self, query: str, limit: int | None = None) -> list[SearchResult]:
        """Ranked, highlighted search joined with each entry's feed.

        Index failures are logged and reported as an empty result.
        """
        if self.index is None:
            return []
        try:
            hits = self.index.search(query, limit=limit)
        except SearchIndexError as exc:
            log_event(
                self.logger,
                "Search failed",
                level=logging.ERROR,
                event="search_failed",
                query=str(query),
                error=str(exc),
            )
            return []
        if not hits:
            return []

        ids = [hit.entry_id for hit in hits]
        with self._session_factory() as session:
            rows = session.scalars(
                select(EntryRow).options(joinedload(EntryRow.feed)).where(EntryRow.id.in_(ids))
            ).all()
            by_id = {row.id: _entry_entity(row, row.feed) for row in rows}

        return [
            SearchResult(entry=by_id[hit.entry_id], rank=hit.rank, highlights=hit.highlights)
            for hit in hits
            if hit.entry_id in by_id
        ]

    def reindex(self, batch_size: int = 500) -> int:
        """Rebuild the search index from every stored entry."""
        if self.index is None:
            return 0
        return self.index.rebuild(self._iter_documents(batch_size))

    def _iter_documents(self, batch_size: int) -> Iterable[dict[str, Any]]:
        last_id = 0
        while True:
            with self._session_factory() as session:
                rows = session.scalars(
                    select(EntryRow)
                    .where(EntryRow.id > last_id)
                    .order_by(EntryRow.id)
                    .limit(batch_size)
                ).all()
                documents = [_entry_entity(row, None).as_indexed_document() for row in rows]
            if not documents:
                return
            yield from documents
            last_id = documents[-1]["id"]

    def _after_commit(self, kind: EventKind, entry: Entry, reindex: bool = True) -> None:
        if reindex and self.index is not None:
            try:
                self.index.upsert(entry.as_indexed_document())
            except SearchIndexError as exc:
                log_event(
                    self.logger,
                    "Search index update failed",
                    level=logging.ERROR,
                    event="index_failed",
                    entry_id=entry.id,
                    error=str(exc),
                )
        self._emit(kind, entry)

    def _emit(self, kind: EventKind, entry: Entry) -> None:
        if self.events is None:
            return
        try:
            self.events.publish(EntryEvent.for_entry(kind, entry))
        except Exception:  # noqa: BLE001
            self.logger.exception("Failed to publish %s event for entry %s", kind.value, entry.id)


def _title_or_default(title: str | None) -> str:
    if title is None or not title.strip():
        return UNTITLED
    return title


def _normalize_categories(categories: Iterable[str | None] | None) -> list[str]:
    normalized = []
    for category in categories or []:
        if category is None:
            continue
        value = str(category).strip()
        if not value:
            continue
        normalized.append(value.lower())
    return normalized


def _order_clauses(order: EntryOrder) -> list[Any]:
    order = EntryOrder(order)
    if order is EntryOrder.RANDOM:
        return [func.random()]
    if order is EntryOrder.OLDEST_FIRST:
        return [EntryRow.published_at.asc(), EntryRow.id.asc()]
    return [EntryRow.published_at.desc(), EntryRow.id.desc()]


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _feed_entity(row: FeedRow) -> Feed:
    return Feed(
        id=row.id,
        url=row.url,
        title=row.title,
        webhook_url=row.webhook_url,
        entries_count=row.entries_count or 0,
    )


def _entry_entity(row: EntryRow, feed_row: FeedRow | None) -> Entry:
    return Entry(
        id=row.id,
        feed_id=row.feed_id,
        title=row.title,
        url=row.url,
        raw_body=row.body,
        external_id=row.external_id,
        categories=list(row.categories or []),
        published_at=_from_db(row.published_at),
        annotations=[Annotation.from_dict(item) for item in row.annotations or []],
        sentiment=row.sentiment,
        enriched_at=_from_db(row.enriched_at),
        created_at=_from_db(row.created_at),
        feed=_feed_entity(feed_row) if feed_row is not None else None,
    )
