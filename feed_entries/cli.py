"""
Command-line interface for feed entries.

Uses Typer to expose ingestion, search, enrichment and export. Supports
loading .env files for the provider API token.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from rich.text import Text
import typer

from .config import AppConfig, load_config
from .core.errors import FeedEntriesError
from .export import to_csv, write_csv
from .runner import FeedEntriesApp, build_app, run_enrich, run_ingest
from .storage.repository import MAX_ROWS_LIMIT

app = typer.Typer(add_completion=False, help="Ingest, search, enrich and export feed entries.")
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", exists=True, help="YAML config file.")
DatabaseOption = typer.Option(None, "--database", "-d", help="Override the database URL.")
LogLevelOption = typer.Option(None, "--log-level", help="Logging level.")


def _load(config: Path | None, database: str | None, log_level: str | None) -> AppConfig:
    load_dotenv()
    cfg = load_config(str(config) if config else None)
    if database:
        cfg.database.url = database
    if log_level:
        cfg.logging.level = log_level
    return cfg


def _open(cfg: AppConfig) -> FeedEntriesApp:
    log_dir = Path("logs") if cfg.logging.file or cfg.logging.nlp_log_enabled else None
    return build_app(cfg, log_dir=log_dir)


@app.command("add-feed")
def add_feed(
    url: str = typer.Argument(..., help="Feed URL."),
    title: str | None = typer.Option(None, "--title", "-t"),
    webhook: str | None = typer.Option(
        None, "--webhook", "-w", help="Endpoint receiving entry lifecycle events."
    ),
    config: Path | None = ConfigOption,
    database: str | None = DatabaseOption,
    log_level: str | None = LogLevelOption,
):
    """Register a feed (or update the webhook of an existing one)."""
    application = _open(_load(config, database, log_level))
    try:
        feed = application.feeds.add_feed(url, title=title, webhook_url=webhook)
        if webhook and feed.webhook_url != webhook:
            feed = application.feeds.set_webhook(feed.id, webhook)
    except FeedEntriesError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        application.close()
    console.print(f"Feed {feed.id}: {feed.url}")


@app.command()
def ingest(
    feed_id: int = typer.Option(..., "--feed-id", "-f", help="Target feed id."),
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True),
    progress: bool = typer.Option(True, "--progress/--no-progress"),
    config: Path | None = ConfigOption,
    database: str | None = DatabaseOption,
    log_level: str | None = LogLevelOption,
):
    """Ingest a JSON feed export, skipping urls already stored."""
    application = _open(_load(config, database, log_level))
    try:
        if application.feeds.get(feed_id) is None:
            console.print(f"[red]Error:[/red] feed {feed_id} not found")
            raise typer.Exit(code=1)
        run_ingest(application, feed_id, input, show_progress=progress, console=console)
    finally:
        application.close()


@app.command()
def search(
    query: str = typer.Argument(..., help="Free-text query; words match as prefixes."),
    limit: int = typer.Option(20, "--limit", "-n"),
    config: Path | None = ConfigOption,
    database: str | None = DatabaseOption,
    log_level: str | None = LogLevelOption,
):
    """Search entries by title, body and url."""
    application = _open(_load(config, database, log_level))
    try:
        results = application.entries.search(query, limit=limit)
    finally:
        application.close()

    if not results:
        console.print("No matching entries.")
        return
    table = Table("rank", "id", "feed", "title", "highlights")
    for result in results:
        snippets = " | ".join(f"{name}: {text}" for name, text in result.highlights.items())
        table.add_row(
            f"{result.rank:.3f}",
            str(result.entry.id),
            result.entry.feed_url or "",
            Text(result.entry.title),
            Text(snippets),
        )
    console.print(table)


@app.command()
def enrich(
    limit: int | None = typer.Option(None, "--limit", "-n", help="Maximum entries to enrich."),
    feed_id: int | None = typer.Option(None, "--feed-id", "-f"),
    progress: bool = typer.Option(True, "--progress/--no-progress"),
    api_key: str | None = typer.Option(
        None,
        "--api-key",
        envvar="DANDELION_TOKEN",
        help="Override provider API token (or set DANDELION_TOKEN / .env).",
    ),
    config: Path | None = ConfigOption,
    database: str | None = DatabaseOption,
    log_level: str | None = LogLevelOption,
):
    """Annotate and score entries that are not enriched yet."""
    cfg = _load(config, database, log_level)
    if api_key:
        cfg.provider.api_key = api_key
    application = _open(cfg)
    try:
        report = run_enrich(
            application, limit=limit, feed_id=feed_id, show_progress=progress, console=console
        )
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        application.close()
    if report.failed:
        raise typer.Exit(code=2)


@app.command()
def export(
    output: Path | None = typer.Option(None, "--output", "-o", help="CSV file (stdout if omitted)."),
    feed_id: int | None = typer.Option(None, "--feed-id", "-f"),
    enriched_only: bool = typer.Option(False, "--enriched-only"),
    limit: int = typer.Option(MAX_ROWS_LIMIT, "--limit", "-n"),
    config: Path | None = ConfigOption,
    database: str | None = DatabaseOption,
    log_level: str | None = LogLevelOption,
):
    """Export entries as CSV, newest first."""
    application = _open(_load(config, database, log_level))
    try:
        entries = application.entries.list_entries(
            feed_id=feed_id, enriched_only=enriched_only, limit=min(limit, MAX_ROWS_LIMIT)
        )
    finally:
        application.close()
    if output is None:
        typer.echo(to_csv(entries), nl=False)
        return
    count = write_csv(entries, output)
    console.print(f"Exported {count} entries to {output}")


@app.command()
def reindex(
    config: Path | None = ConfigOption,
    database: str | None = DatabaseOption,
    log_level: str | None = LogLevelOption,
):
    """Rebuild the search index from storage and report its size."""
    application = _open(_load(config, database, log_level))
    try:
        count = application.entries.reindex()
    finally:
        application.close()
    console.print(f"Indexed {count} entries")


if __name__ == "__main__":
    app()
