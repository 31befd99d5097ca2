# tests/test_validate.py
import pytest

from bookgen.errors import ValidationError
from bookgen.utils.validate import (
    MAX_PREMISE_CHARS, maybe_unwrap, validate_premise, validate_repaired_book,
)


def test_premise_at_both_minimums_passes():
    check = validate_premise("a bb cc dd eeee")
    assert len(check.sanitized) == 15
    assert check.ok and check.errors == []


def test_premise_one_char_short_blocks():
    check = validate_premise("a bb cc dd eee")
    assert not check.ok
    assert any("too short" in e for e in check.blocking)


def test_premise_with_four_words_is_vague():
    check = validate_premise("aaaa bbbb cccc dddd")
    assert check.blocking == ["Premise too vague (minimum 5 words)"]


def test_premise_is_trimmed():
    assert validate_premise("   a bb cc dd eeee \n").sanitized == "a bb cc dd eeee"


def test_blank_premise_raises_validation_error():
    with pytest.raises(ValidationError) as ei:
        validate_premise(None).raise_for_errors()
    assert ei.value.status_code == 400
    assert len(ei.value.issues) == 2


def test_long_premise_truncated_with_issue():
    check = validate_premise("word " * 2400)
    assert check.ok
    assert len(check.sanitized) <= MAX_PREMISE_CHARS
    assert any("truncated" in e for e in check.errors)


def test_maybe_unwrap():
    inner = {"title": "T", "chapters": []}
    assert maybe_unwrap({"book": inner}) is inner
    assert maybe_unwrap({"Livro": inner}) is inner
    assert maybe_unwrap(inner) is inner
    assert maybe_unwrap({"book": "text"}) == {"book": "text"}
