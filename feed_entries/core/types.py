"""
Core data types for feed entries.

This module defines the fundamental data structures shared by every component:
- SourceItem: A raw item as delivered by a feed, before ingestion
- Feed: The collection an entry belongs to, with its subscriber endpoint
- Annotation / Tag: Semantic annotations and their simplified projection
- Entry: The ingested, deduplicated content item
- AddResult: Outcome of an ingestion attempt
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, NamedTuple

from .text import normalize_text, plain_text

NO_CONTENT = "no content"


@dataclass
class SourceItem:
    """Represents a raw item parsed from a feed.

    Attributes:
        url: Link to the original content (required for ingestion)
        title: Optional headline; blank titles become "untitled"
        summary: Optional summary or full body, possibly HTML
        entry_id: Optional opaque identifier assigned by the feed
        categories: Optional category labels in source casing
        published: Optional publication timestamp
    """

    url: str | None
    title: str | None = None
    summary: str | None = None
    entry_id: str | None = None
    categories: list[str | None] | None = None
    published: datetime | None = None


@dataclass
class Feed:
    """A feed and its notification scope.

    Attributes:
        id: Database identifier
        url: Feed URL, unique across feeds
        title: Optional display title
        webhook_url: Endpoint receiving entry lifecycle events, if any
        entries_count: Number of live entries belonging to the feed
    """

    id: int
    url: str
    title: str | None = None
    webhook_url: str | None = None
    entries_count: int = 0


@dataclass
class Annotation:
    """A semantic annotation extracted from an entry's plain text.

    Attributes:
        id: Identifier of the annotated resource; de-duplication key
        uri: Canonical URI of the resource
        spot: Matched text span
        label: Human readable resource label
        confidence: Score assigned by the service
        categories: Categories of the resource
        start: Optional offset of the spot in the plain text
        end: Optional end offset of the spot in the plain text
    """

    id: Any
    uri: str | None = None
    spot: str | None = None
    label: str | None = None
    confidence: float | None = None
    categories: list[str] = field(default_factory=list)
    start: int | None = None
    end: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Annotation":
        return cls(
            id=data.get("id"),
            uri=data.get("uri"),
            spot=data.get("spot"),
            label=data.get("label"),
            confidence=data.get("confidence"),
            categories=list(data.get("categories") or []),
            start=data.get("start"),
            end=data.get("end"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Tag:
    """Simplified annotation view exposed to consumers."""

    uri: str | None
    spot: str | None
    label: str | None
    confidence: float | None
    categories: list[str]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def distinct_by_id(annotations: Iterable[Annotation]) -> list[Annotation]:
    """Drop annotations whose id was already seen, keeping the first one."""
    seen: set[Any] = set()
    kept: list[Annotation] = []
    for annotation in annotations:
        key = _hashable(annotation.id)
        if key in seen:
            continue
        seen.add(key)
        kept.append(annotation)
    return kept


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


@dataclass
class Entry:
    """An ingested content item.

    ``raw_body`` holds the stored body; the ``body`` property substitutes
    the "no content" sentinel for blank values. ``enriched_at`` is the only
    enrichment-completion marker.
    """

    id: int
    feed_id: int
    title: str
    url: str
    raw_body: str | None = None
    external_id: str | None = None
    categories: list[str] = field(default_factory=list)
    published_at: datetime | None = None
    annotations: list[Annotation] = field(default_factory=list)
    sentiment: dict[str, Any] | None = None
    enriched_at: datetime | None = None
    created_at: datetime | None = None
    feed: Feed | None = None

    @property
    def body(self) -> str:
        if self.raw_body is None or not self.raw_body.strip():
            return NO_CONTENT
        return self.raw_body

    @property
    def text(self) -> str:
        return plain_text(self)

    @property
    def feed_url(self) -> str | None:
        return self.feed.url if self.feed else None

    @property
    def enriched(self) -> bool:
        return self.enriched_at is not None

    def tags(self) -> list[Tag]:
        """Project annotations to tags, unique by annotation id."""
        if not self.annotations:
            return []
        return [
            Tag(
                uri=annotation.uri,
                spot=annotation.spot,
                label=annotation.label,
                confidence=annotation.confidence,
                categories=list(annotation.categories),
            )
            for annotation in distinct_by_id(self.annotations)
        ]

    def as_dict(self) -> dict[str, Any]:
        """Full JSON-ready representation used for notification payloads."""
        return {
            "id": self.id,
            "feed_id": self.feed_id,
            "title": self.title,
            "body": self.body,
            "url": self.url,
            "external_id": self.external_id,
            "categories": list(self.categories),
            "published_at": _isoformat(self.published_at),
            "annotations": [a.to_dict() for a in distinct_by_id(self.annotations)],
            "sentiment": self.sentiment,
            "enriched_at": _isoformat(self.enriched_at),
            "created_at": _isoformat(self.created_at),
        }

    def as_indexed_document(self) -> dict[str, Any]:
        """Reduced document handed to the search index.

        Annotations never reach the index; the body is the markup-free text
        of the stored body, without the "no content" sentinel.
        """
        document = self.as_dict()
        document.pop("annotations", None)
        document["body"] = normalize_text(self.raw_body)
        return document


class AddResult(NamedTuple):
    """Outcome of ``EntryRepository.add``; ``entry`` is None when not created."""

    created: bool
    entry: Entry | None


class EntryOrder(str, Enum):
    """Explicit ordering for entry listings."""

    NEWEST_FIRST = "newest_first"
    OLDEST_FIRST = "oldest_first"
    RANDOM = "random"


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
