"""Dandelion dataTXT provider for entity annotations and sentiment."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import LoggingConfig, ProviderConfig
from ...core.errors import EnrichmentCallError
from ...core.types import Annotation
from ...logging_utils import log_event, redact_text, truncate_text
from .base import AnnotationProvider

ANNOTATE_PATH = "/datatxt/nex/v1"
SENTIMENT_PATH = "/datatxt/sent/v1"


class DandelionProvider(AnnotationProvider):
    """Dandelion-backed provider (entity extraction plus sentiment)."""

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        log_cfg: LoggingConfig,
        nlp_logger: logging.Logger | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError("Missing Dandelion API token")
        self.cfg = cfg
        self.api_key = api_key
        self.log_cfg = log_cfg
        self.nlp_logger = nlp_logger
        self._client = httpx.Client(
            base_url=cfg.base_url,
            timeout=cfg.timeout_seconds,
            trust_env=cfg.trust_env,
            transport=transport,
        )

    def annotate(self, text: str) -> list[Annotation]:
        params = {
            "text": text,
            "lang": self.cfg.lang,
            "min_confidence": self.cfg.min_confidence,
            "include": "categories",
        }
        data = self._post("annotate", ANNOTATE_PATH, params, text)
        items = data.get("annotations")
        if not isinstance(items, list):
            raise EnrichmentCallError("annotate", "response has no annotations list")
        annotations = []
        for item in items:
            if not isinstance(item, dict) or item.get("id") is None:
                raise EnrichmentCallError("annotate", f"malformed annotation: {item!r}")
            annotations.append(_to_annotation(item))
        return annotations

    def score_sentiment(self, text: str) -> dict[str, Any]:
        params = {"text": text, "lang": self.cfg.lang}
        data = self._post("sentiment", SENTIMENT_PATH, params, text)
        sentiment = data.get("sentiment")
        if not isinstance(sentiment, dict) or "score" not in sentiment:
            raise EnrichmentCallError("sentiment", "response has no sentiment score")
        try:
            score = float(sentiment["score"])
        except (TypeError, ValueError) as exc:
            raise EnrichmentCallError("sentiment", f"invalid score: {sentiment['score']!r}") from exc
        return {"score": score, "type": sentiment.get("type")}

    def close(self) -> None:
        self._client.close()

    def _post(self, operation: str, path: str, params: dict[str, Any], text: str) -> dict[str, Any]:
        try:
            resp = self._client.post(path, data={**params, "token": self.api_key})
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            self._log_nlp_response(operation, "provider_error", text, str(exc))
            raise EnrichmentCallError(operation, f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            self._log_nlp_response(operation, "parse_error", text, resp.text)
            raise EnrichmentCallError(operation, "response is not valid JSON") from exc
        if not isinstance(data, dict):
            self._log_nlp_response(operation, "parse_error", text, resp.text)
            raise EnrichmentCallError(operation, "response is not a JSON object")
        self._log_nlp_response(operation, "ok", text, resp.text)
        return data

    def _log_nlp_response(self, operation: str, status: str, text: str, content: str) -> None:
        if self.nlp_logger is None:
            return
        redaction = self.log_cfg.nlp_log_redaction
        log_event(
            self.nlp_logger,
            "NLP response",
            event=f"nlp_{operation}",
            status=status,
            provider="dandelion",
            raw_text=truncate_text(redact_text(text, redaction)),
            raw_response=truncate_text(redact_text(content, redaction)),
        )


def _to_annotation(item: dict[str, Any]) -> Annotation:
    categories = item.get("categories") or []
    confidence = item.get("confidence")
    return Annotation(
        id=item["id"],
        uri=item.get("uri"),
        spot=item.get("spot"),
        label=item.get("label") or item.get("title"),
        confidence=float(confidence) if confidence is not None else None,
        categories=[str(category) for category in categories],
        start=item.get("start"),
        end=item.get("end"),
    )
