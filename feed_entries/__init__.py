"""
Feed entries - deduplicated feed storage with search, enrichment and webhooks.

This package ingests feed items into a relational store (one entry per url),
keeps a weighted full-text index over them, enriches entries with semantic
annotations and sentiment through an external NLP service, and notifies each
feed's webhook about entry lifecycle changes.

Main entry point is the CLI via the `feed-entries` command.

Example:
    $ feed-entries add-feed https://example.com/rss --webhook https://hooks.example.com/in
    $ feed-entries ingest -f 1 -i export.json
    $ feed-entries search "rails tips"
"""

__all__ = ["__version__", "AddResult", "Entry", "EntryOrder", "SourceItem", "load_config", "build_app"]
__version__ = "0.1.0"

from .config import load_config
from .core.types import AddResult, Entry, EntryOrder, SourceItem
from .runner import build_app
