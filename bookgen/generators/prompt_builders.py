"""
Prompt builders
• build_book_prompt  – whole book in one JSON object (single-call mode).
• build_frame_prompt – title + synopsis only (decomposed mode, first call).
• build_chapter_prompt – one chapter with a focus hint (decomposed mode).
All builders are pure; as_messages() adds the system persona.
"""

from __future__ import annotations

import json
from textwrap import dedent
from typing import Any, Dict, List, Sequence

from bookgen.engine.metrics import calculate_metrics
from bookgen.models import SizeProfile

SYSTEM_PERSONA = dedent(
    """
    You are a professional novelist and experienced editor.
    You write complete, well-structured and engaging books.
    You follow the brief exactly and answer with valid JSON only.
    """
).strip()

# opening / development / climax / resolution, in percent of a chapter
CHAPTER_SPLIT = (15, 60, 15, 10)

_BAD_EXAMPLE = "Narrative development of chapter 2 based on the description provided."

_GOOD_EXAMPLE = dedent(
    """
    Caio felt the air thicken before the alarms even sounded. His hands,
    usually steady, trembled over the controls. "Lis, are you seeing this?"
    Her voice crackled through the comm: "The sensors are going haywire.
    It's as if space itself is coming apart." He stared at the readings as
    the numbers danced impossibly. "This isn't a malfunction," he whispered.
    "It's a rupture."
    """
).strip()


def _schema_stub(chapter_count: int) -> str:
    stub = {
        "title": "<original book title>",
        "synopsis": "<3-4 paragraph synopsis>",
        "chapters": [
            {"title": f"<title of chapter {i}>", "content": f"<full prose of chapter {i}>"}
            for i in range(1, chapter_count + 1)
        ],
    }
    return json.dumps(stub, ensure_ascii=False, indent=2)


def _structure_block() -> str:
    o, d, c, r = CHAPTER_SPLIT
    return dedent(
        f"""
        ## STRUCTURE OF EVERY CHAPTER
        1. OPENING ({o}% of the chapter): an arresting first scene, immediate context, emotional tone.
        2. DEVELOPMENT ({d}%): natural plot progression, meaningful dialogue, character growth,
           conflict and tension, sensory description.
        3. CLIMAX ({c}%): the chapter's point of highest tension, revelations, turns.
        4. RESOLUTION / HOOK ({r}%): partial closure and a reason to keep reading.
        """
    ).strip()


def _anti_echo_block() -> str:
    return (
        "## NEVER RESTATE THE PREMISE\n"
        "Expand the premise creatively; do not copy it or describe what the chapter "
        "*would* contain.\n\n"
        f"BAD chapter content:\n\"{_BAD_EXAMPLE}\"\n\n"
        f"GOOD chapter content:\n\"{_GOOD_EXAMPLE}\""
    )


def build_book_prompt(
    premise: str,
    profile: SizeProfile,
    chapter_count: int,
    genre: str,
    audience: str,
) -> str:
    m = calculate_metrics(profile, chapter_count)
    head = dedent(
        f"""
        # BOOK COMMISSION – {profile.label.upper()}

        ## METADATA
        - TITLE: create an original, compelling title
        - LENGTH: {profile.pages} ({m.min_pages}-{m.max_pages} pages)
        - CHAPTERS: exactly {chapter_count} complete chapters
        - WORDS PER CHAPTER: {profile.min_words}-{profile.max_words}
        - TOTAL WORDS: {m.min_words}-{m.max_words}
        - GENRE: {genre}
        - AUDIENCE: {audience}
        - READING TIME: {profile.reading_time}
        """
    ).strip()

    return "\n\n".join([
        head,
        f'## AUTHOR\'S PREMISE\n"""\n{premise}\n"""',
        _structure_block(),
        dedent(
            f"""
            ## WRITING GUIDELINES
            - Three-dimensional characters with clear motivations; dialogue that reveals them.
            - Stay coherent with the premise; use language suited to a {audience} audience.
            - Include the conventions of the {genre} genre.
            - Every chapter needs 3-5 meaningful exchanges of dialogue and 2-3 rich descriptive paragraphs.
            """
        ).strip(),
        _anti_echo_block(),
        "## RESPONSE FORMAT (ONLY VALID JSON, NO MARKDOWN)\n" + _schema_stub(chapter_count),
        f"Return exactly {chapter_count} chapters. Each chapter is a complete narrative unit "
        "that also advances the book's overall arc.",
    ])


def build_frame_prompt(premise: str, chapter_count: int, genre: str, audience: str) -> str:
    return "\n\n".join([
        f"Plan a {genre} book for a {audience} audience in {chapter_count} chapters.",
        f'## AUTHOR\'S PREMISE\n"""\n{premise}\n"""',
        "Do not restate the premise; invent an original title and a 3-4 paragraph synopsis "
        "introducing the main characters and the central conflict.",
        'Answer with JSON only:\n{"title": "<original book title>", "synopsis": "<synopsis>"}',
    ])


def show_progress(titles: Sequence[str], current: int, total: int) -> str:
    """[x] for written chapters, an arrow on the current one, [ ] for the rest."""
    lines = [f"[x] Chapter {i}: {t}" for i, t in enumerate(titles, 1)]
    lines.append(f"[ ] Chapter {current} <-- YOU'RE CURRENTLY HERE")
    lines.extend(f"[ ] Chapter {i}" for i in range(current + 1, total + 1))
    return "\n".join(lines)


def build_chapter_prompt(
    premise_summary: str,
    chapter_index: int,
    total_chapters: int,
    focus_hint: str,
    *,
    min_words: int,
    max_words: int,
    genre: str,
    audience: str,
    book_title: str | None = None,
    previous_titles: Sequence[str] = (),
) -> str:
    parts = [
        f"Write chapter {chapter_index} of {total_chapters} of a {genre} book "
        f"for a {audience} audience."
        + (f' The book is titled "{book_title}".' if book_title else ""),
        f'## BOOK PREMISE\n"""\n{premise_summary}\n"""',
        "## BOOK PROGRESS\n" + show_progress(previous_titles, chapter_index, total_chapters),
        f"## FOCUS OF THIS CHAPTER\n{focus_hint}",
        _structure_block(),
        f"Length: {min_words}-{max_words} words of finished prose.",
        _anti_echo_block(),
        'Answer with JSON only:\n{"title": "<chapter title>", "content": "<full chapter prose>"}',
    ]
    return "\n\n".join(parts)


def as_messages(prompt: str) -> List[Dict[str, Any]]:
    return [
        {"role": "system", "content": SYSTEM_PERSONA},
        {"role": "user", "content": prompt},
    ]
