"""Page post-processing: merge undersized pages without crossing chapters."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
import logging

from quickread.ingestion.models import Document, Word

logger = logging.getLogger(__name__)

DEFAULT_MIN_PAGE_WORDS = 100


def assign_page_indices(words: list[Word], page_starts: list[int]) -> None:
    """Rewrite every word's ``page_index`` against ``page_starts`` in place."""

    for index, word in enumerate(words):
        word.page_index = max(bisect_right(page_starts, index) - 1, 0)


def _page_ranges(document: Document) -> list[tuple[int, int]]:
    starts = document.page_starts
    total = document.total_words
    return [(start, starts[k + 1] if k + 1 < len(starts) else total) for k, start in enumerate(starts)]


def merge_small_pages(
    document: Document,
    chapter_starts: Iterable[int],
    min_words: int = DEFAULT_MIN_PAGE_WORDS,
) -> Document:
    """Merge consecutive pages until each holds ``min_words`` readable words.

    A page that begins at a chapter start always opens a new merged page, and
    a merged page holding only image placeholders is closed before the next
    page is appended. The document is updated in place and returned.
    """

    if min_words <= 0:
        raise ValueError("min_words must be positive")
    if document.total_pages <= 1:
        return document

    hard_breaks = set(chapter_starts)
    merged: list[int] = []
    current_text = 0
    current_total = 0

    for start, end in _page_ranges(document):
        page_words = document.words[start:end]
        text_count = sum(1 for word in page_words if not word.is_placeholder)

        if not merged:
            merged.append(start)
            current_text, current_total = text_count, len(page_words)
            continue

        images_only = current_total > 0 and current_text == 0
        if start in hard_breaks or current_text >= min_words or images_only:
            merged.append(start)
            current_text, current_total = text_count, len(page_words)
        else:
            current_text += text_count
            current_total += len(page_words)

    if merged == document.page_starts:
        return document

    logger.debug("Merged %d pages into %d", document.total_pages, len(merged))
    document.page_starts = merged
    assign_page_indices(document.words, merged)
    return document
