"""
Highlighted fragment generation for search results.

A field is split into words; the densest windows of matching words are
chosen first, each fragment is sized between the configured minimum and
maximum word counts, and matching words are wrapped with the start/stop
markers. Fragment text is HTML-escaped so the markers are the only markup.
"""

from __future__ import annotations

import html
import re

from ..config import HighlightConfig
from .tokenizer import token_matches, tokenize

_PIECE_RE = re.compile(r"(\w+)", re.UNICODE)


def build_headline(
    text: str,
    terms: list[str],
    cfg: HighlightConfig,
    prefix: bool = True,
) -> str | None:
    """Return highlighted fragments of ``text`` for ``terms``.

    Args:
        text: Plain text of one indexed field
        terms: Lower-cased query terms
        cfg: Highlight settings (markers, word bounds, fragment count)
        prefix: Whether terms match words they prefix

    Returns:
        Fragments joined with the configured delimiter, or None when no word
        in ``text`` matches
    """
    words = text.split()
    if not words or not terms:
        return None
    matches = [_word_matches(word, terms, prefix) for word in words]
    if not any(matches):
        return None

    min_words, max_words = cfg.word_bounds()
    spans = select_fragments(
        words,
        matches,
        min_words=min_words,
        max_words=max_words,
        max_fragments=max(cfg.max_fragments, 1),
        short_word=cfg.short_word,
    )
    rendered = [
        _render(words[start:end], matches[start:end], terms, cfg, prefix)
        for start, end in sorted(spans)
    ]
    return cfg.fragment_delimiter.join(rendered)


def select_fragments(
    words: list[str],
    matches: list[bool],
    min_words: int,
    max_words: int,
    max_fragments: int,
    short_word: int,
) -> list[tuple[int, int]]:
    """Pick up to ``max_fragments`` non-overlapping (start, end) word spans.

    Each round scores every window of up to ``max_words`` words, clipped at
    the next already chosen fragment, by its number of matching words and
    keeps the best (earliest on ties). The window is then shrunk to its matching span,
    stretched around it up to ``max_words`` and stripped of short non-matching
    edge words while it stays longer than ``min_words``.
    """
    n = len(words)
    used = [False] * n
    spans: list[tuple[int, int]] = []

    while len(spans) < max_fragments:
        match_sums = _prefix_sums(matches, used)
        best: tuple[int, int] | None = None
        best_score = 0
        for start in range(n):
            end = start
            while end < min(start + max_words, n) and not used[end]:
                end += 1
            score = match_sums[end] - match_sums[start]
            if score > best_score:
                best, best_score = (start, end), score
        if best is None:
            break

        start, end = best
        hits = [i for i in range(start, end) if matches[i]]
        s, e = hits[0], hits[-1] + 1
        s, e = _grow(s, e, n, used, max_words)
        s, e = _trim_short_edges(words, matches, s, e, min_words, short_word)

        for i in range(s, e):
            used[i] = True
        spans.append((s, e))

    return spans


def _prefix_sums(flags: list[bool], mask: list[bool] | None = None) -> list[int]:
    sums = [0]
    for i, flag in enumerate(flags):
        counted = flag and not (mask[i] if mask is not None else False)
        sums.append(sums[-1] + (1 if counted else 0))
    return sums


def _grow(s: int, e: int, n: int, used: list[bool], size: int) -> tuple[int, int]:
    while e - s < size:
        grew = False
        if s > 0 and not used[s - 1]:
            s -= 1
            grew = True
        if e - s < size and e < n and not used[e]:
            e += 1
            grew = True
        if not grew:
            break
    return s, e


def _trim_short_edges(
    words: list[str],
    matches: list[bool],
    s: int,
    e: int,
    min_words: int,
    short_word: int,
) -> tuple[int, int]:
    while e - s > min_words and not matches[s] and len(words[s]) <= short_word:
        s += 1
    while e - s > min_words and not matches[e - 1] and len(words[e - 1]) <= short_word:
        e -= 1
    return s, e


def _word_matches(word: str, terms: list[str], prefix: bool) -> bool:
    return any(token_matches(token, term, prefix) for token in tokenize(word) for term in terms)


def _render(
    words: list[str],
    matches: list[bool],
    terms: list[str],
    cfg: HighlightConfig,
    prefix: bool,
) -> str:
    wrapped_once = False
    out: list[str] = []
    for word, matched in zip(words, matches):
        if not matched or (wrapped_once and not cfg.highlight_all):
            out.append(html.escape(word, quote=False))
            continue
        pieces = []
        for piece in _PIECE_RE.split(word):
            if not piece:
                continue
            hit = _PIECE_RE.fullmatch(piece) and any(
                token_matches(piece.lower(), term, prefix) for term in terms
            )
            if hit and (cfg.highlight_all or not wrapped_once):
                pieces.append(f"{cfg.start_sel}{html.escape(piece, quote=False)}{cfg.stop_sel}")
                wrapped_once = True
            else:
                pieces.append(html.escape(piece, quote=False))
        out.append("".join(pieces))
    return " ".join(out)
