# tests/test_prompt_builders.py
import json

from bookgen.config import SIZE_PROFILES
from bookgen.generators.prompt_builders import (
    SYSTEM_PERSONA, as_messages, build_book_prompt, build_chapter_prompt,
    build_frame_prompt, show_progress,
)

PREMISE = "A retired astronaut opens a bakery on a fishing island and hears signals in the dough."


def test_book_prompt_carries_counts_and_delimited_premise():
    p = build_book_prompt(PREMISE, SIZE_PROFILES["small"], 4, "science fiction", "adult")
    assert f'"""\n{PREMISE}\n"""' in p
    assert "exactly 4 complete chapters" in p
    assert "800-1200" in p
    assert "GENRE: science fiction" in p
    assert "NEVER RESTATE THE PREMISE" in p

    stub = json.loads(p.split("NO MARKDOWN)\n", 1)[1].split("\n\nReturn exactly", 1)[0])
    assert len(stub["chapters"]) == 4


def test_book_prompt_follows_chapter_override():
    p = build_book_prompt(PREMISE, SIZE_PROFILES["medium"], 3, "fantasy", "young-adult")
    assert "exactly 3 complete chapters" in p
    assert "Return exactly 3 chapters" in p


def test_frame_prompt():
    p = build_frame_prompt(PREMISE, 8, "mystery", "adult")
    assert p.startswith("Plan a mystery book for a adult audience in 8 chapters.")
    assert PREMISE in p


def test_show_progress():
    out = show_progress(["Arrival", "The Signal"], 3, 4).splitlines()
    assert out == [
        "[x] Chapter 1: Arrival",
        "[x] Chapter 2: The Signal",
        "[ ] Chapter 3 <-- YOU'RE CURRENTLY HERE",
        "[ ] Chapter 4",
    ]


def test_chapter_prompt():
    p = build_chapter_prompt(
        PREMISE, 2, 4, "Deepen the conflict.",
        min_words=800, max_words=1200, genre="fantasy", audience="adult",
        book_title="Salt Bread", previous_titles=["Arrival"],
    )
    assert p.startswith("Write chapter 2 of 4 of a fantasy book")
    assert '"Salt Bread"' in p
    assert "[x] Chapter 1: Arrival" in p
    assert "Deepen the conflict." in p
    assert "800-1200 words" in p


def test_as_messages():
    msgs = as_messages("hello")
    assert msgs[0] == {"role": "system", "content": SYSTEM_PERSONA}
    assert msgs[1] == {"role": "user", "content": "hello"}
