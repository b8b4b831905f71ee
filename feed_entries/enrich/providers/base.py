"""
Abstract base class for NLP annotation providers.

New providers should inherit from AnnotationProvider and implement
the annotate and score_sentiment methods.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ...core.types import Annotation


class AnnotationProvider(ABC):
    """Abstract base class for annotation and sentiment services.

    Implementations raise ``EnrichmentCallError`` on any service failure
    (network error, non-2xx response, malformed payload) and never retry.
    """

    @abstractmethod
    def annotate(self, text: str) -> list[Annotation]:
        """Extract semantic annotations from plain text.

        Args:
            text: Markup-free entry text

        Returns:
            Annotations in service order, possibly with repeated ids
        """
        raise NotImplementedError

    @abstractmethod
    def score_sentiment(self, text: str) -> dict[str, Any]:
        """Score the sentiment of plain text.

        Args:
            text: Markup-free entry text

        Returns:
            Sentiment record, e.g. ``{"score": 0.4, "type": "positive"}``
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release network resources held by the provider."""
