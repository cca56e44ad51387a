"""MOBI/PRC adapter: PalmDB records, MOBI header, EXTH and PalmDOC text."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import struct

from bs4 import BeautifulSoup

from quickread.config import IngestionSettings
from quickread.ingestion.adapters.html_adapter import HtmlWalker
from quickread.ingestion.builder import DocumentBuilder, empty_text_warnings, single_unit_preview
from quickread.ingestion.errors import ErrorCategory, IngestionError, PalmDocError
from quickread.ingestion.models import AdapterResult
from quickread.ingestion.normalization import normalize_whitespace, title_from_path
from quickread.ingestion.palmdoc import decompress_palmdoc

logger = logging.getLogger(__name__)

PALMDB_HEADER_SIZE = 78
COMPRESSION_NONE = 1
COMPRESSION_PALMDOC = 2
COMPRESSION_HUFF_CDIC = 17480

EXTH_AUTHOR = 100
EXTH_UPDATED_TITLE = 503

_CODEPAGES = {65001: "utf-8", 1252: "cp1252"}
_KNOWN_TYPES = frozenset({b"BOOKMOBI", b"TEXtREAd"})


class MobiFormatError(ValueError):
    """Raised when the PalmDB or MOBI header structure is malformed."""


@dataclass(slots=True)
class MobiHeader:
    compression: int
    text_record_count: int
    encryption: int
    encoding: str = "cp1252"
    full_name: str | None = None
    extra_flags: int = 0
    exth: dict[int, list[bytes]] = field(default_factory=dict)

    def exth_text(self, record_type: int) -> str | None:
        for value in self.exth.get(record_type, []):
            text = normalize_whitespace(value.decode(self.encoding, errors="replace"))
            if text:
                return text
        return None


def _u16(data: bytes, offset: int) -> int:
    return struct.unpack_from(">H", data, offset)[0]


def _u32(data: bytes, offset: int) -> int:
    return struct.unpack_from(">I", data, offset)[0]


def read_records(raw: bytes) -> list[bytes]:
    """Split a PalmDB container into its records using the offset table."""

    if len(raw) < PALMDB_HEADER_SIZE:
        raise MobiFormatError("File is too small to be a PalmDB container")
    if raw[60:68] not in _KNOWN_TYPES:
        raise MobiFormatError(f"Unrecognised PalmDB type {raw[60:68]!r}")

    count = _u16(raw, 76)
    if count == 0 or PALMDB_HEADER_SIZE + count * 8 > len(raw):
        raise MobiFormatError("PalmDB record table is truncated")

    offsets = [_u32(raw, PALMDB_HEADER_SIZE + index * 8) for index in range(count)]
    offsets.append(len(raw))
    for start, end in zip(offsets, offsets[1:]):
        if start > end or end > len(raw):
            raise MobiFormatError("PalmDB record offsets are out of order")
    return [raw[offsets[index] : offsets[index + 1]] for index in range(count)]


def parse_exth(data: bytes) -> dict[int, list[bytes]]:
    if len(data) < 12 or data[:4] != b"EXTH":
        return {}
    records: dict[int, list[bytes]] = {}
    count = _u32(data, 8)
    offset = 12
    for _ in range(count):
        if offset + 8 > len(data):
            break
        record_type, length = _u32(data, offset), _u32(data, offset + 4)
        if length < 8 or offset + length > len(data):
            break
        records.setdefault(record_type, []).append(data[offset + 8 : offset + length])
        offset += length
    return records


def parse_header(record0: bytes) -> MobiHeader:
    if len(record0) < 16:
        raise MobiFormatError("Record 0 is too short for a PalmDOC header")

    header = MobiHeader(
        compression=_u16(record0, 0),
        text_record_count=_u16(record0, 8),
        encryption=_u16(record0, 12),
    )
    if len(record0) < 24 or record0[16:20] != b"MOBI":
        return header

    mobi_length = _u32(record0, 20)
    if len(record0) >= 32:
        header.encoding = _CODEPAGES.get(_u32(record0, 28), "cp1252")
    if len(record0) >= 92:
        name_offset, name_length = _u32(record0, 84), _u32(record0, 88)
        if name_length and name_offset + name_length <= len(record0):
            name = record0[name_offset : name_offset + name_length].decode(header.encoding, errors="replace")
            header.full_name = normalize_whitespace(name) or None
    if mobi_length >= 0xE4 and len(record0) >= 0xF4:
        header.extra_flags = _u16(record0, 0xF2)
    if len(record0) >= 0x84 and _u32(record0, 0x80) & 0x40:
        header.exth = parse_exth(record0[16 + mobi_length :])
    return header


def _trailing_entry_size(data: bytes) -> int:
    """Decode the backward variable-width size stored at the end of ``data``."""

    size = 0
    shift = 0
    for byte in reversed(data[-4:]):
        size |= (byte & 0x7F) << shift
        shift += 7
        if byte & 0x80:
            break
    return size


def strip_trailing_entries(record: bytes, extra_flags: int) -> bytes:
    """Remove the trailing entries declared by the extra-data flags."""

    end = len(record)
    flags = extra_flags >> 1
    while flags and end > 0:
        if flags & 1:
            end -= _trailing_entry_size(record[:end])
        flags >>= 1
    if extra_flags & 1 and end > 0:
        end -= (record[end - 1] & 0x3) + 1
    return record[: max(end, 0)]


class MOBIAdapter:
    """Extract words from unencrypted MOBI, AZW and PRC books."""

    extensions = ("mobi", "azw", "prc")
    media_types = ("application/x-mobipocket-ebook",)
    format_name = "Mobipocket"
    supports_preview = True

    def __init__(self, settings: IngestionSettings | None = None) -> None:
        self._settings = settings or IngestionSettings()

    def parse(self, path: Path) -> AdapterResult:
        try:
            records = read_records(path.read_bytes())
            header = parse_header(records[0])
        except (MobiFormatError, struct.error) as exc:
            raise IngestionError(path, f"Could not read MOBI file: {exc}", ErrorCategory.CORRUPT_CONTAINER) from exc

        if header.encryption != 0:
            raise IngestionError(
                path,
                "This book is DRM-protected and cannot be opened. Only DRM-free MOBI files are supported.",
                ErrorCategory.ENCRYPTED_CONTENT,
            )
        if header.compression == COMPRESSION_HUFF_CDIC:
            raise IngestionError(
                path,
                "HUFF/CDIC compressed MOBI files are not supported. Convert the book to EPUB and try again.",
                ErrorCategory.UNSUPPORTED_COMPRESSION,
            )
        if header.compression not in (COMPRESSION_NONE, COMPRESSION_PALMDOC):
            raise IngestionError(
                path, f"Unknown MOBI compression type {header.compression}", ErrorCategory.UNSUPPORTED_COMPRESSION
            )

        text_records = records[1 : 1 + header.text_record_count]
        if not text_records:
            raise IngestionError(path, "MOBI file contains no text records", ErrorCategory.EMPTY_RESULT)

        text = self._decode_text(path, header, text_records)
        builder = DocumentBuilder(self._settings.words_per_page)
        soup = BeautifulSoup(text, "lxml")
        HtmlWalker(builder).walk(soup.body or soup)
        document = builder.build()

        warnings = empty_text_warnings(document, "MOBI file")
        if header.text_record_count > len(text_records):
            warnings.append(
                f"MOBI header declares {header.text_record_count} text records but only {len(text_records)} exist"
            )

        title = header.exth_text(EXTH_UPDATED_TITLE) or header.full_name or title_from_path(path)
        logger.debug("MOBI %s: %d records, %d words", path.name, len(text_records), document.total_words)
        return AdapterResult(
            document=document,
            source_path=str(path),
            format_name="mobi",
            title=title,
            author=header.exth_text(EXTH_AUTHOR),
            preview=single_unit_preview(f'<div class="mobi-content">{builder.take_markup()}</div>', document, title),
            warnings=warnings,
            extra={"file_type": "mobi"},
        )

    def _decode_text(self, path: Path, header: MobiHeader, text_records: list[bytes]) -> str:
        chunks: list[bytes] = []
        for record in text_records:
            payload = strip_trailing_entries(record, header.extra_flags)
            if header.compression == COMPRESSION_PALMDOC:
                try:
                    payload = decompress_palmdoc(payload, strict=self._settings.strict_decompression)
                except PalmDocError as exc:
                    raise IngestionError(
                        path, f"Corrupt PalmDOC text record: {exc}", ErrorCategory.CORRUPT_CONTAINER
                    ) from exc
            chunks.append(payload)
        return b"".join(chunks).decode(header.encoding, errors="replace")
