"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- DatabaseConfig: SQLAlchemy engine settings
- HighlightConfig: Search snippet generation settings
- SearchConfig: Field weights and prefix matching
- EnrichConfig: Enrichment pipeline concurrency
- ProviderConfig: External NLP service settings
- NotifyConfig: Webhook dispatcher settings
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
import os
from typing import Any

import yaml

logger = logging.getLogger(__name__)


@dataclass
class DatabaseConfig:
    """Configuration for the relational store.

    Attributes:
        url: SQLAlchemy database URL
        echo: Whether to log emitted SQL
        busy_timeout_seconds: SQLite lock wait before giving up on a write
    """

    url: str = "sqlite:///feed_entries.db"
    echo: bool = False
    busy_timeout_seconds: float = 30.0


@dataclass
class HighlightConfig:
    """Configuration for highlighted search fragments.

    Attributes:
        start_sel: Marker inserted before each matching word
        stop_sel: Marker inserted after each matching word
        max_words: Upper bound of words per fragment
        min_words: Lower bound of words per fragment
        short_word: Words this long or shorter are trimmed from fragment edges
        highlight_all: Wrap every occurrence instead of only the first one
        max_fragments: Maximum number of fragments per field
        fragment_delimiter: String placed between fragments of one field
    """

    start_sel: str = "<b>"
    stop_sel: str = "</b>"
    max_words: int = 35
    min_words: int = 15
    short_word: int = 4
    highlight_all: bool = True
    max_fragments: int = 3
    fragment_delimiter: str = "&hellip;"

    def word_bounds(self) -> tuple[int, int]:
        """Return (min_words, max_words), swapping inverted bounds."""
        low, high = self.min_words, self.max_words
        if low > high:
            logger.warning(
                "Highlight min_words (%s) exceeds max_words (%s); swapping bounds",
                low,
                high,
            )
            low, high = high, low
        return max(low, 1), max(high, 1)


@dataclass
class SearchConfig:
    """Configuration for the full-text index.

    Attributes:
        weights: Relative weight per indexed field (title A, body B, url C)
        prefix: Whether query tokens match indexed tokens they prefix
        highlight: Snippet generation settings
    """

    weights: dict[str, float] = field(
        default_factory=lambda: {"title": 1.0, "body": 0.4, "url": 0.2}
    )
    prefix: bool = True
    highlight: HighlightConfig = field(default_factory=HighlightConfig)


@dataclass
class EnrichConfig:
    """Configuration for the enrichment pipeline.

    Attributes:
        concurrency: Maximum number of entries enriched at the same time
        batch_size: Default number of pending entries picked per run
    """

    concurrency: int = 4
    batch_size: int = 100


@dataclass
class ProviderConfig:
    """Configuration for the NLP annotation/sentiment provider.

    Attributes:
        name: Provider name ("dandelion" currently supported)
        base_url: Base URL for the provider API
        token_env: Environment variable name containing the API token
        api_key: Optional inline API token (overrides env var)
        lang: Language hint sent with each request ("auto" to detect)
        min_confidence: Minimum annotation confidence requested
        timeout_seconds: Timeout applied to every provider request
        trust_env: Whether to respect system proxy settings for API requests
    """

    name: str = "dandelion"
    base_url: str = "https://api.dandelion.eu"
    token_env: str = "DANDELION_TOKEN"
    api_key: str | None = None
    lang: str = "auto"
    min_confidence: float = 0.6
    timeout_seconds: float = 20.0
    trust_env: bool = True


@dataclass
class NotifyConfig:
    """Configuration for webhook notifications.

    Attributes:
        enabled: Whether lifecycle events are delivered at all
        workers: Number of background delivery threads
        queue_size: Maximum number of pending events (0 for unbounded)
        timeout_seconds: Timeout applied to each delivery request
        user_agent: HTTP User-Agent header string
    """

    enabled: bool = True
    workers: int = 2
    queue_size: int = 1000
    timeout_seconds: float = 10.0
    user_agent: str = "feed-entries/0.1 (+webhook)"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the main log file
        nlp_log_enabled: Whether to enable separate NLP provider logging
        nlp_log_redaction: Redaction mode for NLP logs ("none", "redact_content", "redact_urls_authors")
        nlp_log_file: Name of the NLP log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "feed_entries.jsonl"
    nlp_log_enabled: bool = False
    nlp_log_redaction: str = "redact_urls_authors"
    nlp_log_file: str = "nlp.jsonl"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    enrich: EnrichConfig = field(default_factory=EnrichConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            _deep_update(data[key], value)
        else:
            data[key] = value
    return _fromdict(data)


def _deep_update(target: dict[str, Any], updates: dict[str, Any]) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_update(target[key], value)
        else:
            target[key] = value


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    search = dict(data["search"])
    search["highlight"] = HighlightConfig(**search.get("highlight", {}))
    return AppConfig(
        database=DatabaseConfig(**data["database"]),
        search=SearchConfig(**search),
        enrich=EnrichConfig(**data["enrich"]),
        provider=ProviderConfig(**data["provider"]),
        notify=NotifyConfig(**data["notify"]),
        logging=LoggingConfig(**data["logging"]),
    )


def get_api_key(cfg: ProviderConfig) -> str | None:
    """Get API token from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    return os.getenv(cfg.token_env)
