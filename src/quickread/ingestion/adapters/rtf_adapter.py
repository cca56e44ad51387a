"""RTF adapter built on the control-word tokenizer."""

from __future__ import annotations

import logging
from pathlib import Path

from quickread.config import IngestionSettings
from quickread.ingestion.builder import empty_text_warnings, single_unit_preview
from quickread.ingestion.errors import ErrorCategory, IngestionError
from quickread.ingestion.models import AdapterResult
from quickread.ingestion.normalization import title_from_path
from quickread.ingestion.rtf_tokenizer import build_rtf_document, tokenize_rtf

logger = logging.getLogger(__name__)

_RTF_MAGIC = b"{\\rtf"


class RTFAdapter:
    """Extract words and emphasis from Rich Text Format files."""

    extensions = ("rtf",)
    media_types = ("application/rtf", "text/rtf")
    format_name = "Rich Text"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()

    def parse(self, path: Path) -> AdapterResult:
        raw = path.read_bytes()
        if not raw.lstrip().startswith(_RTF_MAGIC):
            raise IngestionError(path, "Not a valid RTF file: missing {\\rtf header", ErrorCategory.CORRUPT_CONTAINER)

        # bytes above 0x7f are undeclared; \'hh escapes carry the real code page
        rtf_text = tokenize_rtf(raw.decode("latin-1"))
        document, markup = build_rtf_document(rtf_text, self._settings.words_per_page)
        logger.debug("RTF %s: %d words", path.name, document.total_words)

        title = title_from_path(path)
        return AdapterResult(
            document=document,
            source_path=str(path),
            format_name="rtf",
            title=title,
            preview=single_unit_preview(f'<div class="rtf-content">{markup}</div>', document, title),
            warnings=empty_text_warnings(document, "RTF document"),
            extra={"file_type": "rtf"},
        )
