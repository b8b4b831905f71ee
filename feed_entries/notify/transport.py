"""HTTP webhook transport for entry lifecycle events."""

from __future__ import annotations

import httpx

from ..config import NotifyConfig
from ..core.errors import NotificationDeliveryError
from .events import EntryEvent


class WebhookTransport:
    """POSTs the event payload as JSON to the feed's endpoint.

    The event kind travels in the ``X-Entry-Event`` header so the body stays
    exactly ``{"entry": {...}}``. Every request is bounded by
    ``cfg.timeout_seconds``.
    """

    def __init__(self, cfg: NotifyConfig, transport: httpx.BaseTransport | None = None):
        self.cfg = cfg
        self._client = httpx.Client(
            timeout=cfg.timeout_seconds,
            headers={"User-Agent": cfg.user_agent},
            transport=transport,
        )

    def deliver(self, event: EntryEvent) -> int:
        """Send ``event``; returns the response status code.

        Raises:
            NotificationDeliveryError: On network errors, timeouts or a
                non-2xx response
        """
        if not event.endpoint:
            raise NotificationDeliveryError("<none>", "feed has no webhook endpoint")
        headers = {
            "X-Entry-Event": event.kind.value,
            "X-Entry-Id": str(event.entry_id),
            "X-Feed-Id": str(event.feed_id),
        }
        try:
            resp = self._client.post(event.endpoint, json=event.payload, headers=headers)
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(event.endpoint, f"{type(exc).__name__}: {exc}") from exc
        if resp.status_code >= 300:
            raise NotificationDeliveryError(
                event.endpoint, f"HTTP {resp.status_code}", status_code=resp.status_code
            )
        return resp.status_code

    def close(self) -> None:
        self._client.close()
