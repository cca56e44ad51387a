"""Runtime configuration for document ingestion."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Mapping


DEFAULT_WORDS_PER_PAGE = 250
DEFAULT_MIN_PAGE_WORDS = 100
DEFAULT_LOG_LEVEL = "INFO"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_positive_int(*, name: str, raw_value: str, minimum: int = 1) -> int:
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_bool(*, name: str, raw_value: str) -> bool:
    lowered = raw_value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be one of: {', '.join(sorted(_TRUE_VALUES | _FALSE_VALUES))}")


@dataclass(frozen=True, slots=True)
class IngestionSettings:
    """Validated ingestion settings shared by adapters."""

    words_per_page: int = DEFAULT_WORDS_PER_PAGE
    min_page_words: int = DEFAULT_MIN_PAGE_WORDS
    strict_decompression: bool = False
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "IngestionSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        words_raw = source.get("QUICKREAD_WORDS_PER_PAGE", str(DEFAULT_WORDS_PER_PAGE)).strip()
        min_words_raw = source.get("QUICKREAD_MIN_PAGE_WORDS", str(DEFAULT_MIN_PAGE_WORDS)).strip()
        strict_raw = source.get("QUICKREAD_STRICT_DECOMPRESSION", "false").strip()
        log_level_raw = source.get("QUICKREAD_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()

        if not words_raw:
            raise ValueError("QUICKREAD_WORDS_PER_PAGE cannot be empty")
        if not min_words_raw:
            raise ValueError("QUICKREAD_MIN_PAGE_WORDS cannot be empty")
        if not log_level_raw:
            raise ValueError("QUICKREAD_LOG_LEVEL cannot be empty")
        if not isinstance(logging.getLevelName(log_level_raw), int):
            raise ValueError(f"QUICKREAD_LOG_LEVEL is not a logging level: {log_level_raw}")

        return cls(
            words_per_page=_parse_positive_int(name="QUICKREAD_WORDS_PER_PAGE", raw_value=words_raw),
            min_page_words=_parse_positive_int(name="QUICKREAD_MIN_PAGE_WORDS", raw_value=min_words_raw),
            strict_decompression=_parse_bool(name="QUICKREAD_STRICT_DECOMPRESSION", raw_value=strict_raw),
            log_level=log_level_raw,
        )
