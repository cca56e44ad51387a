"""Lifetime of transient per-document resources."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from quickread.ingestion.models import AdapterResult

if TYPE_CHECKING:
    from quickread.ingestion.ingestor import DocumentIngestor

logger = logging.getLogger(__name__)

_RESOURCE_KEYS = ("pdf_document", "image_dir")


def release_result(result: AdapterResult) -> None:
    """Close the PDF handle and remove the image directory of a result.

    Safe to call more than once.
    """

    for key in _RESOURCE_KEYS:
        resource = result.extra.pop(key, None)
        if resource is None:
            continue
        closer = getattr(resource, "close", None) or getattr(resource, "cleanup", None)
        if closer is not None:
            closer()
            logger.debug("Released %s for %s", key, result.source_path)


class DocumentSession:
    """Hold at most one loaded document, releasing the previous one on load."""

    def __init__(self, ingestor: DocumentIngestor) -> None:
        self._ingestor = ingestor
        self._current: AdapterResult | None = None

    @property
    def current(self) -> AdapterResult | None:
        return self._current

    def load(self, path: str | Path, media_type: str | None = None) -> AdapterResult:
        result = self._ingestor.ingest(path, media_type)
        self.close()
        self._current = result
        return result

    def close(self) -> None:
        if self._current is not None:
            release_result(self._current)
            self._current = None

    def __enter__(self) -> "DocumentSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
