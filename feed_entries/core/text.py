"""
Plain-text normalization for entry bodies.

The same normalized text is indexed for search and sent to the
enrichment service, so annotation spots always point into text a
caller can reproduce with ``plain_text(entry)``.
"""

from __future__ import annotations

import warnings
from typing import Protocol

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning


class _HasText(Protocol):
    title: str
    raw_body: str | None


def normalize_text(raw: str | None) -> str:
    """Strip markup from ``raw`` and collapse whitespace runs to single spaces.

    Args:
        raw: HTML or plain text, possibly None

    Returns:
        Trimmed plain text; empty string for blank input

    Example:
        >>> normalize_text("<p>Hello   world</p>\\n\\n")
        'Hello world'
    """
    if not raw or not raw.strip():
        return ""
    if "<" in raw or "&" in raw:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
            raw = BeautifulSoup(raw, "html.parser").get_text()
    return squish(raw)


def squish(text: str) -> str:
    return " ".join(text.split())


def plain_text(entry: _HasText) -> str:
    """Return the canonical plain text of an entry.

    Blank bodies fall back to the title; otherwise the body is stripped of
    markup and whitespace is collapsed.
    """
    body = entry.raw_body
    if not body or not body.strip():
        return entry.title
    return normalize_text(body)
