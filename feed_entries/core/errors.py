"""Exception taxonomy shared by the repository, index, pipeline and dispatcher."""

from __future__ import annotations


class FeedEntriesError(Exception):
    """Base class for all errors raised by this package."""


class DuplicateEntryError(FeedEntriesError):
    """An entry with the same URL already exists."""

    def __init__(self, url: str):
        super().__init__(f"Entry already exists for url: {url}")
        self.url = url


class EntryValidationError(FeedEntriesError):
    """A source item is missing a required field or references an unknown feed."""


class EnrichmentCallError(FeedEntriesError):
    """The annotation or sentiment service failed or returned an invalid payload."""

    def __init__(self, operation: str, reason: str):
        super().__init__(f"{operation} failed: {reason}")
        self.operation = operation
        self.reason = reason


class EntryBusyError(FeedEntriesError):
    """The entry is already being enriched by another worker."""

    def __init__(self, entry_id: int):
        super().__init__(f"Entry {entry_id} is already being enriched")
        self.entry_id = entry_id


class NotificationDeliveryError(FeedEntriesError):
    """A webhook endpoint could not be reached or rejected the event."""

    def __init__(self, endpoint: str, reason: str, status_code: int | None = None):
        super().__init__(f"Delivery to {endpoint} failed: {reason}")
        self.endpoint = endpoint
        self.reason = reason
        self.status_code = status_code


class SearchIndexError(FeedEntriesError):
    """The search index rejected a document or failed to answer a query."""
