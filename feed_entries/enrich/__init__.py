"""
Semantic enrichment of entries through an external NLP provider.
"""

from .pipeline import EnrichmentPipeline, EnrichmentReport
from .providers import AnnotationProvider, DandelionProvider, available_providers, create_provider

__all__ = [
    "AnnotationProvider",
    "DandelionProvider",
    "EnrichmentPipeline",
    "EnrichmentReport",
    "available_providers",
    "create_provider",
]
