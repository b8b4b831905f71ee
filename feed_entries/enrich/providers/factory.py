"""Provider factory and registry for swappable NLP backends."""

from __future__ import annotations

import logging

import httpx

from ...config import LoggingConfig, ProviderConfig, get_api_key
from .base import AnnotationProvider
from .dandelion import DandelionProvider


ProviderBuilder = type[AnnotationProvider]

_PROVIDER_REGISTRY: dict[str, ProviderBuilder] = {
    "dandelion": DandelionProvider,
}


def available_providers() -> list[str]:
    """Return the set of registered provider names."""
    return sorted(_PROVIDER_REGISTRY.keys())


def create_provider(
    provider_cfg: ProviderConfig,
    log_cfg: LoggingConfig,
    nlp_logger: logging.Logger | None = None,
    transport: httpx.BaseTransport | None = None,
) -> AnnotationProvider:
    """Build a provider instance from runtime config."""
    name = provider_cfg.name.lower().strip()
    builder = _PROVIDER_REGISTRY.get(name)
    if builder is None:
        supported = ", ".join(available_providers())
        raise ValueError(f"Unsupported provider: {provider_cfg.name}. Supported: {supported}")
    api_key = get_api_key(provider_cfg)
    return builder(provider_cfg, api_key, log_cfg, nlp_logger, transport=transport)
