"""CSV export of entries."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable

from .core.types import Entry

CSV_COLUMNS = ("feed_url", "url", "title", "text", "categories", "published_at")
CATEGORY_SEPARATOR = ";"


def to_csv(entries: Iterable[Entry]) -> str:
    """Render entries as CSV text: a header row, then one row per entry.

    ``text`` is the plain text of the entry and ``feed_url`` the url of its
    feed; categories are joined with ``;``.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for entry in entries:
        writer.writerow(_row(entry))
    return buffer.getvalue()


def write_csv(entries: Iterable[Entry], output_path: Path) -> int:
    """Write entries to ``output_path`` as CSV; returns the row count."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(output_path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for entry in entries:
            writer.writerow(_row(entry))
            count += 1
    return count


def _row(entry: Entry) -> list[str]:
    return [
        entry.feed_url or "",
        entry.url,
        entry.title,
        entry.text,
        CATEGORY_SEPARATOR.join(entry.categories),
        entry.published_at.isoformat() if entry.published_at else "",
    ]
