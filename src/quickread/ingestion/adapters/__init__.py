"""Format adapter implementations and contracts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from quickread.config import IngestionSettings

from .base import FormatAdapter

if TYPE_CHECKING:
    from quickread.ingestion.registry import AdapterRegistry

logger = logging.getLogger(__name__)

try:
    from .epub_adapter import EPUBAdapter
except ImportError:
    EPUBAdapter = None
    logger.warning("EPUB support unavailable: install 'EbookLib' and 'beautifulsoup4'")

try:
    from .pdf_adapter import PDFAdapter
except ImportError:
    PDFAdapter = None
    logger.warning("PDF support unavailable: install 'pymupdf'")

try:
    from .text_adapter import TextAdapter
except ImportError:
    TextAdapter = None
    logger.warning("Plain-text support unavailable: install 'charset-normalizer'")

try:
    from .html_adapter import HTMLAdapter
except ImportError:
    HTMLAdapter = None
    logger.warning("HTML support unavailable: install 'beautifulsoup4' and 'lxml'")

try:
    from .markdown_adapter import MarkdownAdapter
except ImportError:
    MarkdownAdapter = None
    logger.warning("Markdown support unavailable: install 'charset-normalizer'")

try:
    from .fb2_adapter import FB2Adapter
except ImportError:
    FB2Adapter = None
    logger.warning("FB2 support unavailable: install 'lxml'")

try:
    from .docx_adapter import DOCXAdapter
except ImportError:
    DOCXAdapter = None
    logger.warning("DOCX support unavailable: install 'python-docx'")

from .rtf_adapter import RTFAdapter

try:
    from .odt_adapter import ODTAdapter
except ImportError:
    ODTAdapter = None
    logger.warning("ODT support unavailable: install 'lxml'")

try:
    from .mobi_adapter import MOBIAdapter
except ImportError:
    MOBIAdapter = None
    logger.warning("MOBI support unavailable: install 'beautifulsoup4' and 'lxml'")


def build_default_adapters(settings: IngestionSettings | None = None) -> list[FormatAdapter]:
    """Return the available adapters in lookup order."""

    settings = settings or IngestionSettings()
    adapter_types = (
        EPUBAdapter,
        PDFAdapter,
        TextAdapter,
        HTMLAdapter,
        MarkdownAdapter,
        FB2Adapter,
        DOCXAdapter,
        RTFAdapter,
        ODTAdapter,
        MOBIAdapter,
    )
    return [adapter_type(settings) for adapter_type in adapter_types if adapter_type is not None]


def build_default_registry(settings: IngestionSettings | None = None) -> AdapterRegistry:
    from quickread.ingestion.registry import AdapterRegistry

    return AdapterRegistry(build_default_adapters(settings))


__all__ = [
    "FormatAdapter",
    "EPUBAdapter",
    "PDFAdapter",
    "TextAdapter",
    "HTMLAdapter",
    "MarkdownAdapter",
    "FB2Adapter",
    "DOCXAdapter",
    "RTFAdapter",
    "ODTAdapter",
    "MOBIAdapter",
    "build_default_adapters",
    "build_default_registry",
]
