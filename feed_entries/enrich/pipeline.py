"""
Entry enrichment: semantic annotations plus sentiment.

An entry counts as enriched only once annotations, sentiment and
``enriched_at`` have been stored together. Every enrichment of an entry
holds a per-entry lease, so at most one enrichment of a given entry runs
at a time within the process.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
import threading
from typing import Callable, Iterable, Iterator

from ..config import EnrichConfig
from ..core.errors import EnrichmentCallError, EntryBusyError, EntryValidationError
from ..core.text import plain_text
from ..core.types import Entry, EntryOrder, distinct_by_id
from ..logging_utils import log_event
from ..storage.repository import EntryRepository, utc_now
from .providers.base import AnnotationProvider


@dataclass
class EnrichmentReport:
    """Outcome of a batch enrichment run.

    Attributes:
        enriched: Number of entries successfully enriched
        failed: Number of entries whose enrichment raised an error
        skipped: Number of entries already being enriched elsewhere
        errors: Failure reason per entry id
    """

    enriched: int = 0
    failed: int = 0
    skipped: int = 0
    errors: dict[int, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.enriched + self.failed + self.skipped


class EnrichmentPipeline:
    """Runs the annotate, score, save sequence for entries."""

    def __init__(
        self,
        repository: EntryRepository,
        provider: AnnotationProvider,
        cfg: EnrichConfig | None = None,
        logger: logging.Logger | None = None,
        clock: Callable = utc_now,
    ):
        self.repository = repository
        self.provider = provider
        self.cfg = cfg or EnrichConfig()
        self.logger = logger or logging.getLogger("feed_entries.enrich")
        self._clock = clock
        self._leases: set[int] = set()
        self._leases_lock = threading.Lock()

    @contextmanager
    def lease(self, entry_id: int) -> Iterator[None]:
        """Hold the enrichment lease for ``entry_id``.

        Raises:
            EntryBusyError: If another enrichment of the entry is running
        """
        with self._leases_lock:
            if entry_id in self._leases:
                raise EntryBusyError(entry_id)
            self._leases.add(entry_id)
        try:
            yield
        finally:
            with self._leases_lock:
                self._leases.discard(entry_id)

    def enrich(self, entry: Entry | int) -> Entry:
        """Annotate and score one entry, persisting both results together.

        The stored entry is left untouched when either provider call fails.

        Raises:
            EntryValidationError: If the entry does not exist
            EntryBusyError: If the entry is already being enriched
            EnrichmentCallError: If the annotation or sentiment call fails
        """
        entry_id = entry.id if isinstance(entry, Entry) else int(entry)
        with self.lease(entry_id):
            current = self.repository.get(entry_id)
            if current is None:
                raise EntryValidationError(f"Entry {entry_id} not found")
            text = plain_text(current)
            annotations = distinct_by_id(self.provider.annotate(text))
            sentiment = self.provider.score_sentiment(text)
            enriched = self.repository.save_enrichment(
                entry_id, annotations, sentiment, self._clock()
            )
        log_event(
            self.logger,
            "Entry enriched",
            event="entry_enriched",
            entry_id=entry_id,
            annotations=len(annotations),
            sentiment=sentiment.get("type"),
        )
        return enriched

    def pending(self, limit: int | None = None, feed_id: int | None = None) -> list[Entry]:
        """Entries not enriched yet, oldest first."""
        return self.repository.list_entries(
            feed_id=feed_id,
            order=EntryOrder.OLDEST_FIRST,
            unenriched_only=True,
            limit=limit if limit is not None else self.cfg.batch_size,
        )

    def enrich_many(
        self,
        entries: Iterable[Entry | int],
        on_done: Callable[[int, str], None] | None = None,
    ) -> EnrichmentReport:
        """Enrich entries concurrently, bounded by ``cfg.concurrency``.

        Failures are recorded per entry and never abort the batch.
        ``on_done`` receives ``(entry_id, outcome)`` after each entry.
        """
        return asyncio.run(self._enrich_many_async(list(entries), on_done))

    async def _enrich_many_async(
        self,
        entries: list[Entry | int],
        on_done: Callable[[int, str], None] | None,
    ) -> EnrichmentReport:
        report = EnrichmentReport()
        semaphore = asyncio.Semaphore(max(self.cfg.concurrency, 1))

        async def _enrich_single(entry: Entry | int) -> None:
            entry_id = entry.id if isinstance(entry, Entry) else int(entry)
            async with semaphore:
                try:
                    await asyncio.to_thread(self.enrich, entry_id)
                    report.enriched += 1
                    outcome = "enriched"
                except EntryBusyError:
                    report.skipped += 1
                    outcome = "skipped"
                    log_event(
                        self.logger,
                        "Entry enrichment skipped: already running",
                        level=logging.DEBUG,
                        event="enrich_skipped",
                        entry_id=entry_id,
                    )
                except (EnrichmentCallError, EntryValidationError) as exc:
                    report.failed += 1
                    report.errors[entry_id] = str(exc)
                    outcome = "failed"
                    log_event(
                        self.logger,
                        "Entry enrichment failed",
                        level=logging.WARNING,
                        event="enrich_failed",
                        entry_id=entry_id,
                        error=str(exc),
                    )
                except Exception as exc:  # noqa: BLE001
                    report.failed += 1
                    report.errors[entry_id] = f"{type(exc).__name__}: {exc}"
                    outcome = "failed"
                    self.logger.exception("Unexpected error enriching entry %s", entry_id)
            if on_done is not None:
                on_done(entry_id, outcome)

        tasks = [asyncio.create_task(_enrich_single(entry)) for entry in entries]
        await asyncio.gather(*tasks)
        log_event(
            self.logger,
            "Enrichment batch complete",
            event="enrich_batch_complete",
            enriched=report.enriched,
            failed=report.failed,
            skipped=report.skipped,
        )
        return report
