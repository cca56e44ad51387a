"""Ingestion package interfaces."""

from .errors import ErrorCategory, IngestionError
from .ingestor import DocumentIngestor
from .models import AdapterResult, Document, Preview, Word
from .registry import AdapterRegistry
from .session import DocumentSession, release_result

__all__ = [
    "AdapterRegistry",
    "AdapterResult",
    "Document",
    "DocumentIngestor",
    "DocumentSession",
    "ErrorCategory",
    "IngestionError",
    "Preview",
    "Word",
    "release_result",
]
