"""Markdown adapter backed by the block-model parser."""

from __future__ import annotations

from pathlib import Path

from quickread.config import IngestionSettings
from quickread.ingestion.adapters.text_adapter import decode_text
from quickread.ingestion.builder import empty_text_warnings
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.markdown import ContinuationPolicy, parse_markdown
from quickread.ingestion.models import AdapterResult
from quickread.ingestion.normalization import title_from_path


class MarkdownAdapter:
    """Parse Markdown files into paged preview blocks."""

    extensions = ("md", "markdown", "mdown", "mkd")
    media_types = ("text/markdown", "text/x-markdown")
    format_name = "Markdown"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None, policy: ContinuationPolicy | None = None) -> None:
        self._settings = settings or IngestionSettings()
        self._policy = policy

    def parse(self, path: Path) -> AdapterResult:
        try:
            text = decode_text(path.read_bytes())
        except ValueError as exc:
            raise IngestionError(path, str(exc), ErrorCategory.CORRUPT_CONTAINER) from exc

        result = parse_markdown(text, self._settings.words_per_page, self._policy)
        return AdapterResult(
            document=result.document,
            source_path=str(path),
            format_name="markdown",
            title=result.title or title_from_path(path),
            preview=result.preview,
            warnings=empty_text_warnings(result.document, "Markdown document"),
            extra={"file_type": "markdown"},
        )
