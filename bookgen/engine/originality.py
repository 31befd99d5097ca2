# engine/originality.py
"""
Detect books that merely echo the user's premise.

A document is flagged when a chapter
  • contains a known echo phrase ("based on the description", …),
  • contains the premise itself verbatim, or
  • is implausibly short for the requested words-per-chapter.

When flagged, the pipeline swaps in fallback.synthesize_book() instead of
paying for a second generation.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import List

from bookgen.models import BookDocument

logger = logging.getLogger(__name__)

ECHO_MARKERS = (
    "based on the description",
    "based on the provided description",
    "based on the premise",
    "narrative development of",
    "narrative development based",
    "this chapter expands the main narrative",
    "content of chapter",
    "baseado na descricao",
    "desenvolvimento da narrativa",
    "desenvolvimento narrativo do",
    "conteudo do capitulo",
    "este capitulo expande a narrativa",
)
SHORT_CHAPTER_RATIO = 0.05
MIN_VERBATIM_PREMISE = 40


def _norm(text: str) -> str:
    text = unicodedata.normalize("NFKD", text)
    text = "".join(c for c in text if not unicodedata.combining(c))
    return re.sub(r"\s+", " ", text).strip().lower()


def echo_reasons(document: BookDocument, premise: str, min_words: int) -> List[str]:
    reasons: List[str] = []
    premise_n = _norm(premise)
    floor = max(1, int(min_words * SHORT_CHAPTER_RATIO))

    for i, ch in enumerate(document.chapters, 1):
        content = _norm(ch.content)
        hit = next((m for m in ECHO_MARKERS if m in content), None)
        if hit:
            reasons.append(f"chapter {i}: echo marker {hit!r}")
        elif len(premise_n) >= MIN_VERBATIM_PREMISE and premise_n in content:
            reasons.append(f"chapter {i}: restates the premise verbatim")
        elif len(content.split()) < floor:
            reasons.append(f"chapter {i}: {len(content.split())} words, expected at least {floor}")
    return reasons


def needs_regeneration(document: BookDocument, premise: str, min_words: int) -> bool:
    reasons = echo_reasons(document, premise, min_words)
    if reasons:
        logger.warning("Originality guard triggered: %s", "; ".join(reasons))
    return bool(reasons)
