# tests/test_repair.py
import json

import pytest

from bookgen.engine import fallback
from bookgen.engine.repair import (
    MIN_CHAPTER_CHARS, embedded_json, heuristic_sections, parse_book, parse_chapter, strict_json,
)
from bookgen.utils.validate import validate_repaired_book

from conftest import book_json, prose


def _assert_well_formed(doc, n):
    assert len(doc.chapters) == n
    assert doc.title.strip() and doc.synopsis.strip()
    assert all(c.title.strip() and len(c.content) >= MIN_CHAPTER_CHARS for c in doc.chapters)
    validate_repaired_book(doc.model_dump())


PROSE_BOOK = "\n\n".join([
    "The Keeper of Stormy Point",
    "Chapter 1: The Light",
    prose(1),
    "Chapter 2: The Storm",
    prose(2),
])


@pytest.mark.parametrize("raw", [
    book_json(4),
    "```json\n" + book_json(4) + "\n```",
    "Here is your book!\n\n" + book_json(4) + "\n\nI hope you enjoy it.",
    json.dumps({"book": json.loads(book_json(4))}),
    PROSE_BOOK,
    "",
    None,
])
def test_parse_book_always_returns_expected_chapters(raw):
    _assert_well_formed(parse_book(raw, 4), 4)


def test_strict_json_keeps_model_text():
    doc = parse_book(book_json(4), 4)
    assert doc.title == "The Keeper of Stormy Point"
    assert doc.chapters[2].title == "Watch 3"
    assert doc.chapters[2].content == prose(3)


def test_embedded_json_tier():
    raw = "Sure, here it is:\n" + book_json(4) + "\nEnjoy!"
    assert strict_json(raw, 4) is None
    assert embedded_json(raw, 4)["title"] == "The Keeper of Stormy Point"


def test_extra_chapters_are_dropped():
    doc = parse_book(book_json(6), 4)
    assert [c.title for c in doc.chapters] == ["Watch 1", "Watch 2", "Watch 3", "Watch 4"]


def test_missing_chapters_are_padded():
    doc = parse_book(book_json(2), 4)
    assert doc.chapters[1].title == "Watch 2"
    assert doc.chapters[3] == fallback.placeholder_chapter(4, 4)


def test_prose_headings_become_chapters():
    doc = parse_book(PROSE_BOOK, 4)
    assert doc.title == "The Keeper of Stormy Point"
    assert doc.chapters[0].title == "Chapter 1: The Light"
    assert doc.chapters[1].content == prose(2)
    assert doc.synopsis == fallback.PLACEHOLDER_SYNOPSIS


def test_unheaded_prose_grouped_into_expected_chapters():
    paragraphs = [prose(i) for i in range(1, 4)]
    data = heuristic_sections("\n\n".join(paragraphs), 3)
    assert len(data["chapters"]) == 3


def test_malformed_output_falls_back_to_placeholder_book():
    doc = parse_book("Sure! Here's your book: {incomplete json", 4)
    _assert_well_formed(doc, 4)
    assert doc.title == fallback.PLACEHOLDER_TITLE


def test_truncated_json_keeps_complete_chapters():
    full = book_json(3, title="Salt and Fog")
    cut = full[: full.index('"Watch 3"') + 40]
    doc = parse_book(cut, 3)
    assert doc.title == "Salt and Fog"
    assert [c.title for c in doc.chapters[:2]] == ["Watch 1", "Watch 2"]
    assert doc.chapters[2] == fallback.placeholder_chapter(3, 3)


def test_degenerate_fields_are_replaced():
    raw = json.dumps({
        "title": "<original book title>",
        "synopsis": "short",
        "chapters": [{"title": "", "content": "too short"}, {"title": 7, "content": [prose(2)]}],
    })
    doc = parse_book(raw, 2)
    assert doc.title == fallback.PLACEHOLDER_TITLE
    assert doc.synopsis == fallback.PLACEHOLDER_SYNOPSIS
    assert doc.chapters[0] == fallback.placeholder_chapter(1, 2)
    assert doc.chapters[1].title == "7"
    assert doc.chapters[1].content == prose(2)


def test_parse_chapter_json_and_text():
    ch = parse_chapter(json.dumps({"title": "The Reef", "content": prose(1)}), 1, 4)
    assert ch.title == "The Reef"

    ch = parse_chapter("## The Reef\n\n" + prose(1), 1, 4)
    assert (ch.title, ch.content) == ("The Reef", prose(1))

    ch = parse_chapter("", 3, 4)
    assert ch == fallback.placeholder_chapter(3, 4)
