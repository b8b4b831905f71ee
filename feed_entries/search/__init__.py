"""
Full-text search over entries.

Weighted (title > body > url), prefix-matching, with highlighted
fragments per matching field.
"""

from .highlight import build_headline
from .index import INDEXED_FIELDS, SearchHit, SearchIndex
from .tokenizer import query_terms, tokenize

__all__ = [
    "INDEXED_FIELDS",
    "SearchHit",
    "SearchIndex",
    "build_headline",
    "query_terms",
    "tokenize",
]
