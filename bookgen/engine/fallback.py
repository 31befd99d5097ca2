# engine/fallback.py
"""
Synthesized content used when the model gives us nothing usable.

placeholder_*   – premise-unaware filler used by the repairer.
synthesize_book – premise-aware skeleton used when the originality
                  guard rejects a generated book.
"""

from __future__ import annotations

import re
from typing import List, Sequence

from bookgen.models import BookDocument, Chapter

PLACEHOLDER_TITLE = "Untitled AI-Generated Book"
PLACEHOLDER_SYNOPSIS = (
    "An engaging story developed with the help of artificial intelligence, "
    "following its characters through conflict, discovery and change."
)
DEFAULT_MOTIFS = ("central mystery", "growing conflict", "hidden truth")

_STOPWORDS = {
    "a", "an", "the", "and", "or", "but", "of", "in", "on", "at", "to", "for",
    "from", "with", "by", "about", "into", "over", "after", "before", "is", "are",
    "was", "were", "be", "been", "who", "that", "which", "this", "these", "those",
    "his", "her", "their", "its", "our", "my", "your", "he", "she", "they", "it",
    "we", "i", "you", "as", "ago", "than", "then", "when", "where", "while", "story",
    "book", "um", "uma", "o", "os", "de", "da", "do", "das", "dos", "que", "em",
    "no", "na", "com", "por", "para",
}


def focus_hint(index: int, total: int) -> str:
    """What chapter *index* (1-based) of *total* should achieve."""
    if index == 1:
        return "Introduce the main characters, the setting and the central question."
    if index == total:
        return "Resolve the central conflict and close the characters' emotional arcs."
    if total >= 4 and index == round(total * 2 / 3):
        return "Raise the tension to the book's main turning point."
    if index == total - 1:
        return "Bring every thread together and push the characters to the brink."
    return "Deepen the conflict, reveal new information and develop the characters."


def premise_motifs(premise: str, count: int = 3) -> List[str]:
    words = re.findall(r"[^\W\d_]{3,}", premise.lower())
    seen: List[str] = []
    for w in words:
        if w not in _STOPWORDS and w not in seen:
            seen.append(w)
    return seen[:count]


def _skeleton(index: int, total: int, motifs: Sequence[str]) -> str:
    m = list(motifs) + list(DEFAULT_MOTIFS)
    if index == 1:
        when = "on an ordinary morning"
    elif index == total:
        when = "on the eve of the final reckoning"
    else:
        when = "in the uneasy aftermath of what came before"
    hook = (
        "The story closes with the quiet certainty that nothing will be as it was, "
        "and that this ending is also a beginning."
        if index == total else
        "A new question lingers in the silence, and it will not wait long to demand an answer."
    )
    return "\n\n".join([
        f"Chapter {index} opens {when}, and everything seems to turn around the {m[0]}. "
        "The air carries a tension no one can name yet, and the smallest details of the day "
        "begin to matter.",
        f"As the hours pass, the people at the heart of this tale are forced to face the {m[1]}. "
        "Conversations turn sharp, old loyalties are tested, and each choice pushes them further "
        "from the safety they once knew. "
        + focus_hint(index, total),
        f"Then the moment arrives when the {m[2]} can no longer be ignored. What was hidden comes "
        "to light, and the cost of every earlier decision becomes impossible to escape.",
        "When the dust settles, something has changed for good. " + hook,
    ])


def placeholder_content(index: int, total: int) -> str:
    return _skeleton(index, total, DEFAULT_MOTIFS)


def placeholder_chapter(index: int, total: int) -> Chapter:
    return Chapter(title=f"Chapter {index}", content=placeholder_content(index, total))


def placeholder_book(chapter_count: int) -> BookDocument:
    return BookDocument(
        title=PLACEHOLDER_TITLE,
        synopsis=PLACEHOLDER_SYNOPSIS,
        chapters=[placeholder_chapter(i, chapter_count) for i in range(1, chapter_count + 1)],
    )


def _first_sentence(text: str, limit: int = 200) -> str:
    sentence = re.split(r"(?<=[.!?])\s", text.strip(), maxsplit=1)[0]
    if len(sentence) > limit:
        sentence = sentence[:limit].rsplit(" ", 1)[0] + "…"
    return sentence.rstrip(".!?… ")


def synthesize_book(premise: str, chapter_count: int, genre: str, audience: str) -> BookDocument:
    """Premise-aware stand-in built without another API call."""
    motifs = premise_motifs(premise)
    title = "The " + " ".join(w.capitalize() for w in motifs[:2]) if motifs else PLACEHOLDER_TITLE
    seed = _first_sentence(premise)
    seed = seed[:1].lower() + seed[1:]
    synopsis = (
        f"In this {genre} tale for {audience} readers, it all begins when {seed}. "
        f"Across {chapter_count} chapters the characters are drawn deeper into the "
        f"{(motifs + list(DEFAULT_MOTIFS))[0]}, forced to choose between what they know and "
        "what they must become."
    )
    return BookDocument(
        title=title,
        synopsis=synopsis,
        chapters=[
            Chapter(title=f"Chapter {i}", content=_skeleton(i, chapter_count, motifs))
            for i in range(1, chapter_count + 1)
        ],
    )
