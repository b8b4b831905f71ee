"""JSON parser for RSS feed exports.

This module turns feed exports in JSON form into SourceItem objects ready
for ``EntryRepository.add``. The format uses:
- Top-level metadata (exportTime, total, optional feedUrl/feedTitle)
- Articles array with id, title, url, publishedAt, summary, category/categories
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Any

from ..core.types import SourceItem

logger = logging.getLogger(__name__)


def parse_feed_export(data: dict[str, Any]) -> list[SourceItem]:
    """Parse a JSON feed export into a list of SourceItem objects.

    The export structure:
        {
            "exportTime": "2026-02-03T13:22:16.502Z",
            "total": 2,
            "articles": [
                {
                    "id": "241476308963169281",
                    "title": "Article Title",
                    "url": "https://example.com/article",
                    "publishedAt": "2026-02-03T11:44:10.702Z",
                    "summary": "<p>Summary or full body</p>",
                    "category": "Tech"
                }
            ]
        }

    Args:
        data: The parsed JSON content as a dictionary

    Returns:
        Source items in export order. Items without a url are skipped with a
        warning; every other field is optional.

    Raises:
        ValueError: If the JSON is missing the 'articles' key
    """
    if "articles" not in data:
        raise ValueError("Invalid JSON format: missing 'articles' key")

    items: list[SourceItem] = []
    for raw in data["articles"]:
        url = raw.get("url")
        if not url:
            logger.warning("Skipping article %s: missing url", raw.get("id", "unknown"))
            continue

        summary = raw.get("summary") or raw.get("content")
        if summary == "":
            summary = None

        entry_id = raw.get("id")
        items.append(
            SourceItem(
                url=url,
                title=raw.get("title"),
                summary=summary,
                entry_id=str(entry_id) if entry_id is not None else None,
                categories=_categories(raw),
                published=parse_timestamp(raw.get("publishedAt")),
            )
        )
    return items


def load_feed_export(path: Path) -> list[SourceItem]:
    """Read and parse a JSON feed export file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return parse_feed_export(data)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware datetime.

    Unparseable values are logged and treated as missing.
    """
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Ignoring invalid publishedAt value: %s", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _categories(raw: dict[str, Any]) -> list[str | None]:
    categories = raw.get("categories")
    if isinstance(categories, list):
        return list(categories)
    category = raw.get("category")
    if category:
        return [category]
    return []
