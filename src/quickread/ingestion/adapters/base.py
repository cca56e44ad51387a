"""Shared adapter contract for per-format ingestion parsers."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from quickread.ingestion.models import AdapterResult


@runtime_checkable
class FormatAdapter(Protocol):
    """Protocol that every format adapter must implement.

    ``parse`` raises :class:`quickread.ingestion.errors.IngestionError` for
    structured failures; non-fatal problems go into ``AdapterResult.warnings``.
    """

    extensions: tuple[str, ...]
    media_types: tuple[str, ...]
    format_name: str
    supports_preview: bool

    def parse(self, path: Path) -> AdapterResult:
        """Parse a file into the canonical word stream."""


def file_extension(path: Path) -> str:
    """Lowercased final extension without the dot (``""`` when missing)."""

    return path.suffix.lower().lstrip(".")


def compound_extension(path: Path) -> str:
    """Lowercased last two extensions (``fb2.zip``), or ``""``."""

    suffixes = [part.lower().lstrip(".") for part in path.suffixes]
    return ".".join(suffixes[-2:]) if len(suffixes) >= 2 else ""


def can_handle(adapter: FormatAdapter, path: Path, media_type: str | None = None) -> bool:
    """Return True when the adapter accepts the path's extension or the media type."""

    extensions = adapter.extensions
    if file_extension(path) in extensions or compound_extension(path) in extensions:
        return True
    return bool(media_type) and media_type.lower() in adapter.media_types
