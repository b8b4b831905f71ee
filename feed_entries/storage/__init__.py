"""
Relational persistence for feeds and entries.
"""

from .models import Base, EntryRow, FeedRow
from .repository import MAX_ROWS_LIMIT, EntryRepository, FeedRepository, SearchResult
from .session import create_engine_from_config, init_database, make_session_factory

__all__ = [
    "Base",
    "EntryRepository",
    "EntryRow",
    "FeedRepository",
    "FeedRow",
    "MAX_ROWS_LIMIT",
    "SearchResult",
    "create_engine_from_config",
    "init_database",
    "make_session_factory",
]
