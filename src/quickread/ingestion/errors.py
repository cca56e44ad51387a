"""Structured failure types raised by ingestion adapters."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ErrorCategory(str, Enum):
    """Machine-distinguishable failure categories."""

    UNSUPPORTED_FORMAT = "unsupported-format"
    CORRUPT_CONTAINER = "corrupt-container"
    ENCRYPTED_CONTENT = "encrypted-content"
    UNSUPPORTED_COMPRESSION = "unsupported-compression"
    EMPTY_RESULT = "empty-result"


@dataclass(slots=True)
class IngestionError(Exception):
    """Domain error for adapter routing and extraction failures."""

    path: Path
    message: str
    category: ErrorCategory = ErrorCategory.CORRUPT_CONTAINER

    def __str__(self) -> str:
        return f"{self.message} (path={self.path})"

    def to_dict(self) -> dict[str, str]:
        return {"category": self.category.value, "message": self.message, "path": str(self.path)}


class PalmDocError(ValueError):
    """Raised by strict PalmDOC decompression on an out-of-range back-reference."""
