"""
Application wiring and batch workflows.

This module assembles every component from configuration:
1. Database engine and session factory
2. Search index, rebuilt from storage on startup
3. Notification dispatcher
4. Feed and entry repositories
5. Enrichment pipeline (built on demand, it needs a provider token)

and runs the batch workflows behind the CLI: ingesting a JSON feed export
and enriching pending entries, with optional progress display.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)
from sqlalchemy.engine import Engine

from .config import AppConfig
from .core.types import SourceItem
from .enrich.pipeline import EnrichmentPipeline, EnrichmentReport
from .enrich.providers.base import AnnotationProvider
from .enrich.providers.factory import create_provider
from .input.json_parser import load_feed_export
from .logging_utils import log_event, setup_logging, setup_nlp_logger
from .notify.dispatcher import NotificationDispatcher
from .search.index import SearchIndex
from .storage.repository import EntryRepository, FeedRepository
from .storage.session import create_engine_from_config, init_database, make_session_factory


@dataclass
class IngestStats:
    """Statistics collected while ingesting a feed export.

    Attributes:
        total: Number of source items read from the export
        created: Entries created
        skipped: Items not ingested (duplicate url or invalid item)
    """

    total: int = 0
    created: int = 0
    skipped: int = 0


class FeedEntriesApp:
    """Container for the wired components of one process."""

    def __init__(
        self,
        cfg: AppConfig,
        engine: Engine,
        feeds: FeedRepository,
        entries: EntryRepository,
        index: SearchIndex,
        dispatcher: NotificationDispatcher,
        logger: logging.Logger,
        nlp_logger: logging.Logger | None = None,
        provider: AnnotationProvider | None = None,
    ):
        self.cfg = cfg
        self.engine = engine
        self.feeds = feeds
        self.entries = entries
        self.index = index
        self.dispatcher = dispatcher
        self.logger = logger
        self.nlp_logger = nlp_logger
        self._provider = provider
        self._pipeline: EnrichmentPipeline | None = None

    @property
    def pipeline(self) -> EnrichmentPipeline:
        """Enrichment pipeline, creating the configured provider on first use."""
        if self._pipeline is None:
            if self._provider is None:
                self._provider = create_provider(self.cfg.provider, self.cfg.logging, self.nlp_logger)
            self._pipeline = EnrichmentPipeline(
                self.entries,
                self._provider,
                self.cfg.enrich,
                logger=self.logger.getChild("enrich"),
            )
        return self._pipeline

    def close(self) -> None:
        """Deliver queued notifications, then release network and database resources."""
        self.dispatcher.stop(drain=True, timeout=self.cfg.notify.timeout_seconds)
        close_transport = getattr(self.dispatcher.transport, "close", None)
        if close_transport is not None:
            close_transport()
        if self._provider is not None:
            self._provider.close()
        self.engine.dispose()


def build_app(
    cfg: AppConfig,
    log_dir: Path | None = None,
    provider: AnnotationProvider | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> FeedEntriesApp:
    """Wire storage, search, notifications and enrichment from ``cfg``.

    The in-process search index is rebuilt from storage before returning.
    """
    logger = setup_logging(cfg.logging, log_dir)
    nlp_logger = setup_nlp_logger(cfg.logging, log_dir)

    engine = create_engine_from_config(cfg.database)
    init_database(engine)
    session_factory = make_session_factory(engine)

    index = SearchIndex(cfg.search)
    dispatcher = dispatcher or NotificationDispatcher(cfg.notify, logger=logger.getChild("notify"))
    entries = EntryRepository(
        session_factory,
        index=index,
        events=dispatcher,
        logger=logger.getChild("storage"),
    )
    feeds = FeedRepository(session_factory)

    indexed = entries.reindex()
    log_event(
        logger,
        "Application ready",
        level=logging.DEBUG,
        event="app_ready",
        database=engine.url.render_as_string(hide_password=True),
        indexed=indexed,
    )
    return FeedEntriesApp(
        cfg=cfg,
        engine=engine,
        feeds=feeds,
        entries=entries,
        index=index,
        dispatcher=dispatcher,
        logger=logger,
        nlp_logger=nlp_logger,
        provider=provider,
    )


def ingest_items(
    app: FeedEntriesApp,
    feed_id: int,
    items: list[SourceItem],
    progress: Progress | None = None,
    task_id: int | None = None,
) -> IngestStats:
    """Add every item to the feed, counting created and skipped entries."""
    stats = IngestStats(total=len(items))
    for item in items:
        result = app.entries.add(feed_id, item)
        if result.created:
            stats.created += 1
        else:
            stats.skipped += 1
        if progress is not None and task_id is not None:
            progress.advance(task_id, 1)
    log_event(
        app.logger,
        "Ingestion complete",
        event="ingest_complete",
        feed_id=feed_id,
        total=stats.total,
        created_count=stats.created,
        skipped=stats.skipped,
    )
    return stats


def run_ingest(
    app: FeedEntriesApp,
    feed_id: int,
    input_path: Path,
    show_progress: bool = True,
    console: Console | None = None,
) -> IngestStats:
    """Ingest a JSON feed export file into feed ``feed_id``."""
    console = console or Console()
    items = load_feed_export(input_path)
    log_event(
        app.logger,
        "Ingestion start",
        event="ingest_start",
        feed_id=feed_id,
        input=str(input_path),
        total=len(items),
    )
    if not show_progress:
        stats = ingest_items(app, feed_id, items)
    else:
        with _progress(console) as progress:
            task_id = progress.add_task("Ingest", total=len(items))
            stats = ingest_items(app, feed_id, items, progress, task_id)
    _render_ingest_stats(stats, console)
    return stats


def run_enrich(
    app: FeedEntriesApp,
    limit: int | None = None,
    feed_id: int | None = None,
    show_progress: bool = True,
    console: Console | None = None,
) -> EnrichmentReport:
    """Enrich pending (not yet enriched) entries, oldest first."""
    console = console or Console()
    pipeline = app.pipeline
    pending = pipeline.pending(limit=limit, feed_id=feed_id)
    if not show_progress:
        report = pipeline.enrich_many(pending)
    else:
        with _progress(console) as progress:
            task_id = progress.add_task("Enrich", total=len(pending))
            report = pipeline.enrich_many(
                pending, on_done=lambda _entry_id, _outcome: progress.advance(task_id, 1)
            )
    _render_enrich_report(report, console)
    return report


def _progress(console: Console) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeRemainingColumn(),
        console=console,
    )


def _render_ingest_stats(stats: IngestStats, console: Console) -> None:
    console.print(
        "[bold]Ingest summary[/bold]: "
        f"total={stats.total}, created={stats.created}, skipped={stats.skipped}"
    )


def _render_enrich_report(report: EnrichmentReport, console: Console) -> None:
    console.print(
        "[bold]Enrich summary[/bold]: "
        f"enriched={report.enriched}, failed={report.failed}, skipped={report.skipped}"
    )
    for entry_id, error in sorted(report.errors.items()):
        console.print(f"  entry {entry_id}: {error}", markup=False)
