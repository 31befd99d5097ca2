# engine/metrics.py
"""
Size estimates before generation and statistics after it.

    metrics = calculate_metrics(profile, chapters)    # sizing a request
    stats   = summarize(document)                     # reporting a result
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from bookgen.config import TOKENS_PER_WORD
from bookgen.models import BookDocument, SizeProfile

WORDS_PER_PAGE = 250
CHARS_PER_PAGE = 1800
PAGES_PER_MINUTE = 3


@dataclass(frozen=True)
class BookMetrics:
    min_words: int
    max_words: int
    avg_words: float
    min_pages: int
    max_pages: int
    estimated_tokens: int
    words_per_page: int = WORDS_PER_PAGE
    tokens_per_word: float = TOKENS_PER_WORD


@dataclass(frozen=True)
class BookStatistics:
    total_characters: int
    estimated_pages: int
    estimated_reading_minutes: int

    @property
    def reading_time_label(self) -> str:
        n = self.estimated_reading_minutes
        return f"{n} minute" if n == 1 else f"{n} minutes"


def words_to_tokens(words: float) -> int:
    return math.ceil(words * TOKENS_PER_WORD)


def required_tokens(chapters: int, max_words: int) -> int:
    """Tokens needed to carry *chapters* chapters of *max_words* words."""
    return words_to_tokens(chapters * max_words)


def calculate_metrics(profile: SizeProfile, chapters: int) -> BookMetrics:
    min_words = profile.min_words * chapters
    max_words = profile.max_words * chapters
    avg_words = (min_words + max_words) / 2
    return BookMetrics(
        min_words=min_words,
        max_words=max_words,
        avg_words=avg_words,
        min_pages=math.ceil(min_words / WORDS_PER_PAGE),
        max_pages=math.ceil(max_words / WORDS_PER_PAGE),
        estimated_tokens=words_to_tokens(avg_words),
    )


def summarize(document: BookDocument) -> BookStatistics:
    total = sum(len(ch.content) for ch in document.chapters)
    pages = math.ceil(total / CHARS_PER_PAGE)
    return BookStatistics(
        total_characters=total,
        estimated_pages=pages,
        estimated_reading_minutes=math.ceil(pages / PAGES_PER_MINUTE),
    )
