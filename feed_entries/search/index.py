"""
In-process weighted full-text index over entry title, body and url.

Documents are the reduced dictionaries produced by
``Entry.as_indexed_document()``; only the indexed fields are read from
them. Every query term must match (prefix match by default) and results
are ranked by the weighted, log-damped term frequency of each field, so a
title hit always outranks an equally frequent url-only hit.
"""

from __future__ import annotations

import bisect
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
import logging
import math
import threading
from typing import Any, Iterable

from ..config import SearchConfig
from ..core.errors import SearchIndexError
from ..core.text import squish
from .highlight import build_headline
from .tokenizer import query_terms, token_matches, tokenize

logger = logging.getLogger(__name__)

INDEXED_FIELDS = ("title", "body", "url")


@dataclass
class SearchHit:
    """A ranked match returned by the index.

    Attributes:
        entry_id: Identifier of the matching entry
        rank: Relevance score, higher is better
        highlights: Highlighted fragments per matching field
    """

    entry_id: int
    rank: float
    highlights: dict[str, str] = field(default_factory=dict)


@dataclass
class _IndexedDocument:
    entry_id: int
    published: float
    texts: dict[str, str]
    counts: dict[str, Counter]


class SearchIndex:
    """Thread-safe inverted index with prefix lookups.

    Writers and readers share one index-local lock; the postings for a
    document are replaced atomically, so a query never sees half of an
    update.
    """

    def __init__(self, cfg: SearchConfig | None = None):
        self.cfg = cfg or SearchConfig()
        unknown = set(self.cfg.weights) - set(INDEXED_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported indexed fields: {sorted(unknown)}")
        self._weights = {name: float(self.cfg.weights.get(name, 0.0)) for name in INDEXED_FIELDS}
        self._docs: dict[int, _IndexedDocument] = {}
        self._postings: dict[str, set[int]] = {}
        self._vocabulary: list[str] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._docs)

    def __contains__(self, entry_id: object) -> bool:
        with self._lock:
            return entry_id in self._docs

    def upsert(self, document: dict[str, Any]) -> None:
        """Add or replace the document for ``document["id"]``."""
        indexed = self._build(document)
        with self._lock:
            self._drop(indexed.entry_id)
            self._docs[indexed.entry_id] = indexed
            for token in _all_tokens(indexed):
                postings = self._postings.get(token)
                if postings is None:
                    postings = self._postings[token] = set()
                    bisect.insort(self._vocabulary, token)
                postings.add(indexed.entry_id)

    def remove(self, entry_id: int) -> bool:
        with self._lock:
            return self._drop(entry_id)

    def clear(self) -> None:
        with self._lock:
            self._docs.clear()
            self._postings.clear()
            self._vocabulary.clear()

    def rebuild(self, documents: Iterable[dict[str, Any]]) -> int:
        """Replace the index contents with ``documents``; returns the count."""
        built = [self._build(document) for document in documents]
        with self._lock:
            self.clear()
            for indexed in built:
                self._docs[indexed.entry_id] = indexed
                for token in _all_tokens(indexed):
                    self._postings.setdefault(token, set()).add(indexed.entry_id)
            self._vocabulary = sorted(self._postings)
        logger.info("Search index rebuilt with %s documents", len(built))
        return len(built)

    def search(self, query: str, limit: int | None = None) -> list[SearchHit]:
        """Return hits for ``query`` ordered by descending rank.

        Args:
            query: Free-text query; each word is a (prefix) term
            limit: Optional maximum number of hits

        Returns:
            Ranked hits with highlighted fragments; empty when the query has
            no terms or nothing matches
        """
        if not isinstance(query, str):
            raise SearchIndexError(f"Query must be a string, got {type(query).__name__}")
        terms = query_terms(query)
        if not terms:
            return []

        with self._lock:
            candidates: set[int] | None = None
            for term in terms:
                matched = self._lookup(term)
                candidates = matched if candidates is None else candidates & matched
                if not candidates:
                    return []
            scored = [self._score(self._docs[entry_id], terms) for entry_id in candidates or ()]

        scored.sort(key=lambda item: (-item[0], -item[1].published, -item[1].entry_id))
        if limit is not None:
            scored = scored[:limit]

        prefix = self.cfg.prefix
        hits: list[SearchHit] = []
        for rank, doc in scored:
            highlights = {}
            for name in INDEXED_FIELDS:
                headline = build_headline(doc.texts[name], terms, self.cfg.highlight, prefix)
                if headline is not None:
                    highlights[name] = headline
            hits.append(SearchHit(entry_id=doc.entry_id, rank=rank, highlights=highlights))
        return hits

    def _lookup(self, term: str) -> set[int]:
        if not self.cfg.prefix:
            return set(self._postings.get(term, ()))
        found: set[int] = set()
        start = bisect.bisect_left(self._vocabulary, term)
        for token in self._vocabulary[start:]:
            if not token.startswith(term):
                break
            found |= self._postings[token]
        return found

    def _score(self, doc: _IndexedDocument, terms: list[str]) -> tuple[float, _IndexedDocument]:
        rank = 0.0
        prefix = self.cfg.prefix
        for term in terms:
            for name in INDEXED_FIELDS:
                tf = sum(
                    count
                    for token, count in doc.counts[name].items()
                    if token_matches(token, term, prefix)
                )
                if tf:
                    rank += self._weights[name] * math.log1p(tf)
        return rank, doc

    def _drop(self, entry_id: int) -> bool:
        doc = self._docs.pop(entry_id, None)
        if doc is None:
            return False
        for token in _all_tokens(doc):
            postings = self._postings.get(token)
            if postings is None:
                continue
            postings.discard(entry_id)
            if not postings:
                del self._postings[token]
                idx = bisect.bisect_left(self._vocabulary, token)
                if idx < len(self._vocabulary) and self._vocabulary[idx] == token:
                    del self._vocabulary[idx]
        return True

    def _build(self, document: dict[str, Any]) -> _IndexedDocument:
        try:
            entry_id = int(document["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SearchIndexError(f"Indexed document needs an integer id: {exc}") from exc
        texts = {name: squish(str(document.get(name) or "")) for name in INDEXED_FIELDS}
        counts = {name: Counter(tokenize(text)) for name, text in texts.items()}
        return _IndexedDocument(
            entry_id=entry_id,
            published=_timestamp(document.get("published_at")),
            texts=texts,
            counts=counts,
        )


def _all_tokens(doc: _IndexedDocument) -> set[str]:
    tokens: set[str] = set()
    for counter in doc.counts.values():
        tokens.update(counter)
    return tokens


def _timestamp(value: Any) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value).timestamp()
        except ValueError:
            return 0.0
    return 0.0
