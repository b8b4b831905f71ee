"""Tests for CSV export."""

import csv
import io
from datetime import datetime, timezone

from feed_entries.core.types import Entry, Feed
from feed_entries.export import CSV_COLUMNS, to_csv, write_csv


def _entries():
    feed = Feed(id=1, url="https://example.com/rss")
    return [
        Entry(
            id=1,
            feed_id=1,
            title="Hello, world",
            url="https://example.com/a",
            raw_body="<p>First   body</p>",
            categories=["tech", "news"],
            published_at=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            feed=feed,
        ),
        Entry(id=2, feed_id=1, title="Only title", url="https://example.com/b", feed=feed),
    ]


def test_to_csv_writes_header_and_rows():
    rows = list(csv.reader(io.StringIO(to_csv(_entries()))))

    assert tuple(rows[0]) == CSV_COLUMNS
    assert rows[1] == [
        "https://example.com/rss",
        "https://example.com/a",
        "Hello, world",
        "First body",
        "tech;news",
        "2026-01-02T03:04:05+00:00",
    ]
    assert rows[2][3] == "Only title"
    assert rows[2][4] == ""


def test_to_csv_with_no_entries_has_only_header():
    assert to_csv([]) == ",".join(CSV_COLUMNS) + "\n"


def test_write_csv_creates_file(tmp_path):
    path = tmp_path / "out" / "entries.csv"
    assert write_csv(_entries(), path) == 2
    assert path.read_text(encoding="utf-8") == to_csv(_entries())
