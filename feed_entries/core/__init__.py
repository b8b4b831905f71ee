"""
Core domain models and business logic.

This package contains data types, text normalization and errors that are
independent of storage, search, enrichment or notification.
"""

from .dedup import canonical_url
from .errors import (
    DuplicateEntryError,
    EnrichmentCallError,
    EntryBusyError,
    EntryValidationError,
    FeedEntriesError,
    NotificationDeliveryError,
    SearchIndexError,
)
from .text import normalize_text, plain_text
from .types import (
    AddResult,
    Annotation,
    Entry,
    EntryOrder,
    Feed,
    SourceItem,
    Tag,
    distinct_by_id,
)

__all__ = [
    "AddResult",
    "Annotation",
    "Entry",
    "EntryOrder",
    "Feed",
    "SourceItem",
    "Tag",
    "distinct_by_id",
    "canonical_url",
    "normalize_text",
    "plain_text",
    "FeedEntriesError",
    "DuplicateEntryError",
    "EntryValidationError",
    "EnrichmentCallError",
    "EntryBusyError",
    "NotificationDeliveryError",
    "SearchIndexError",
]
