from .base import AnnotationProvider
from .dandelion import DandelionProvider
from .factory import available_providers, create_provider

__all__ = ["AnnotationProvider", "DandelionProvider", "available_providers", "create_provider"]
