"""
SQLAlchemy models for feeds and entries.

The unique constraint on ``entries.url`` is the authority for
deduplication; application-level lookups are only a fast path.
"""

from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class FeedRow(Base):
    __tablename__ = "feeds"

    id = Column(Integer, primary_key=True)
    url = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=True)
    webhook_url = Column(String, nullable=True)
    entries_count = Column(Integer, nullable=False, default=0)

    entries = relationship("EntryRow", back_populates="feed", passive_deletes=True)


class EntryRow(Base):
    __tablename__ = "entries"

    id = Column(Integer, primary_key=True)
    feed_id = Column(Integer, ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=True)
    url = Column(String, unique=True, nullable=False, index=True)
    external_id = Column(String, nullable=True)
    categories = Column(JSON, nullable=False, default=list)
    published_at = Column(DateTime(timezone=True), nullable=False, index=True)
    annotations = Column(JSON, nullable=True)
    sentiment = Column(JSON, nullable=True)
    enriched_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    feed = relationship("FeedRow", back_populates="entries")
