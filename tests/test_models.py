# tests/test_models.py
import pytest
from jsonschema import ValidationError as SchemaError
from pydantic import ValidationError

from bookgen.models import BookDocument, Chapter, GenerationRequest, SizeProfile, Usage
from bookgen.utils.validate import validate_book, validate_repaired_book


def test_request_accepts_camel_case():
    r = GenerationRequest.model_validate({"description": "x", "size": "small", "chapterCount": 3})
    assert r.chapter_count == 3
    assert (r.genre, r.audience) == ("fiction", "adult")


def test_request_bounds_chapter_count():
    with pytest.raises(ValidationError):
        GenerationRequest(description="x", size="small", chapter_count=51)


def test_profile_word_range_checked():
    with pytest.raises(ValidationError):
        SizeProfile(key="k", label="K", description="", chapters=1, min_words=10, max_words=5,
                    token_budget=100, model="m", pages="", reading_time="")


def test_usage_adds_up():
    u = Usage(prompt_tokens=1, completion_tokens=2, total_tokens=3) + Usage(total_tokens=4)
    assert (u.prompt_tokens, u.completion_tokens, u.total_tokens) == (1, 2, 7)


def test_document_matches_strict_schema():
    doc = BookDocument(title="T", synopsis="S", chapters=[Chapter(title="One", content="Text")])
    validate_repaired_book(doc.model_dump())
    with pytest.raises(SchemaError):
        validate_repaired_book({"title": "T", "synopsis": "S", "chapters": []})


def test_loose_schema_rejects_lone_chapter():
    validate_book({"chapters": ["text", None, {"title": 1, "content": ["a", "b"]}]})
    with pytest.raises(SchemaError):
        validate_book({"title": "Watch 1", "content": "text"})
