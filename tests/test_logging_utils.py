"""Tests for structured logging helpers."""

import json
import logging

from feed_entries.config import LoggingConfig
from feed_entries.logging_utils import (
    JsonlFormatter,
    log_event,
    redact_text,
    setup_logging,
    setup_nlp_logger,
    truncate_text,
)


def test_jsonl_formatter_includes_extra_fields():
    record = logging.LogRecord("feed_entries", logging.INFO, __file__, 1, "Entry created", None, None)
    record.event = "entry_created"
    record.entry_id = 5

    payload = json.loads(JsonlFormatter().format(record))

    assert payload["message"] == "Entry created"
    assert payload["level"] == "INFO"
    assert payload["event"] == "entry_created"
    assert payload["entry_id"] == 5


def test_setup_logging_writes_jsonl_file(tmp_path):
    logger = setup_logging(LoggingConfig(console=False, file=True), tmp_path)
    log_event(logger, "Ingestion complete", event="ingest_complete", created_count=2)
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "feed_entries.jsonl").read_text(encoding="utf-8").splitlines()
    payload = json.loads(lines[-1])
    assert payload["event"] == "ingest_complete"
    assert payload["created_count"] == 2


def test_log_event_prefixes_fields_named_like_record_attributes(tmp_path):
    logger = setup_logging(LoggingConfig(console=False, file=True), tmp_path)
    log_event(logger, "Ingestion complete", event="ingest_complete", created=3, module="ingest")
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "feed_entries.jsonl").read_text(encoding="utf-8").splitlines()
    payload = json.loads(lines[-1])
    assert payload["field_created"] == 3
    assert payload["field_module"] == "ingest"
    assert "created" not in payload


def test_nlp_logger_disabled_by_default(tmp_path):
    assert setup_nlp_logger(LoggingConfig(), tmp_path) is None
    assert setup_nlp_logger(LoggingConfig(nlp_log_enabled=True), None) is None


def test_redaction_modes():
    text = "see https://example.com/a for details"
    assert redact_text(text, "none") == text
    assert redact_text(text, "redact_content") == ""
    assert redact_text(text, "redact_urls_authors") == "see [REDACTED_URL] for details"


def test_truncate_text():
    assert truncate_text("abc", max_chars=5) == "abc"
    assert truncate_text("abcdef", max_chars=3) == "abc...(truncated)"
