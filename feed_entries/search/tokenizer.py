"""
Word tokenization shared by indexing, querying and highlighting.

Tokens are lower-cased runs of word characters; a query term matches a
token exactly or, with prefix matching on, any token it starts.
"""

from __future__ import annotations

import re

TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str | None) -> list[str]:
    """Split text into lower-cased word tokens."""
    if not text:
        return []
    return [token.lower() for token in TOKEN_RE.findall(text)]


def query_terms(query: str | None) -> list[str]:
    """Tokenize a query, dropping repeated terms but keeping their order."""
    seen: set[str] = set()
    terms: list[str] = []
    for token in tokenize(query):
        if token in seen:
            continue
        seen.add(token)
        terms.append(token)
    return terms


def token_matches(token: str, term: str, prefix: bool) -> bool:
    return token.startswith(term) if prefix else token == term
