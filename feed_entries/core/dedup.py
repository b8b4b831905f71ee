"""
URL canonicalization used as the deduplication key.

Two source items are duplicates when their canonical URLs are equal:
1. Surrounding whitespace is ignored
2. Scheme and host are case-insensitive
3. The fragment never identifies a different document
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


def canonical_url(url: str | None) -> str | None:
    """Return the canonical form of ``url``, or None when it is blank.

    Args:
        url: Raw URL from a feed item

    Returns:
        URL with lower-cased scheme and host and no fragment

    Example:
        >>> canonical_url(" HTTP://Example.com/News#top ")
        'http://example.com/News'
    """
    if url is None:
        return None
    stripped = url.strip()
    if not stripped:
        return None
    parts = urlsplit(stripped)
    if not parts.scheme or not parts.netloc:
        return stripped
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, "")
    )
