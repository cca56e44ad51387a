"""Routing entrypoint for ingestion adapters."""

from __future__ import annotations

import logging
from pathlib import Path

from quickread.config import IngestionSettings
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.models import AdapterResult
from quickread.ingestion.registry import AdapterRegistry, unsupported_message
from quickread.ingestion.session import release_result

logger = logging.getLogger(__name__)


class DocumentIngestor:
    """Resolve the right adapter and return canonical parse output.

    ``ingest`` never raises for input problems: failures are reported in
    ``AdapterResult.error`` alongside an empty document.
    """

    def __init__(self, registry: AdapterRegistry | None = None, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()
        if registry is None:
            from quickread.ingestion.adapters import build_default_registry

            registry = build_default_registry(self._settings)
        self._registry = registry

    @property
    def registry(self) -> AdapterRegistry:
        return self._registry

    @property
    def settings(self) -> IngestionSettings:
        return self._settings

    def ingest(self, path: str | Path, media_type: str | None = None) -> AdapterResult:
        """Parse a file path into an ``AdapterResult``."""

        source = Path(path)
        adapter = self._registry.adapter_for(source, media_type)
        if adapter is None:
            error = IngestionError(source, unsupported_message(source, self._registry), ErrorCategory.UNSUPPORTED_FORMAT)
            logger.warning("No adapter for %s", source)
            return AdapterResult.failure(error)

        logger.debug("Parsing %s with %s adapter", source, adapter.format_name)
        try:
            result = adapter.parse(source)
        except IngestionError as exc:
            logger.warning("%s", exc)
            return AdapterResult.failure(exc, format_name=adapter.format_name)
        except OSError as exc:
            error = IngestionError(source, f"Failed to read source file: {exc}", ErrorCategory.CORRUPT_CONTAINER)
            logger.warning("%s", error)
            return AdapterResult.failure(error, format_name=adapter.format_name)
        except Exception as exc:
            error = IngestionError(
                source, f"Failed to parse {adapter.format_name} file: {exc}", ErrorCategory.CORRUPT_CONTAINER
            )
            logger.warning("%s", error, exc_info=True)
            return AdapterResult.failure(error, format_name=adapter.format_name)

        for warning in result.warnings:
            logger.warning("%s: %s", source.name, warning)
        return result

    def release(self, result: AdapterResult) -> None:
        """Close the transient resources held by ``result``."""

        release_result(result)
