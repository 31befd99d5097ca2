# tests/test_originality.py
from bookgen.engine import fallback
from bookgen.engine.originality import echo_reasons, needs_regeneration
from bookgen.models import BookDocument, Chapter

from conftest import LIGHTHOUSE, prose


def _doc(*contents):
    return BookDocument(
        title="T", synopsis="S",
        chapters=[Chapter(title=f"C{i}", content=c) for i, c in enumerate(contents, 1)],
    )


def test_original_prose_passes():
    assert not needs_regeneration(_doc(prose(1), prose(2)), LIGHTHOUSE, 800)


def test_portuguese_echo_sentence_exact_flagged():
    doc = _doc(prose(1), "Desenvolvimento da narrativa baseado na descrição fornecida.")
    assert needs_regeneration(doc, LIGHTHOUSE, 800)
    assert echo_reasons(doc, LIGHTHOUSE, 800) == ["chapter 2: echo marker 'baseado na descricao'"]


def test_portuguese_chapter_variant_flagged():
    doc = _doc(prose(1), "Desenvolvimento da narrativa do capítulo 2 baseado na descrição fornecida.")
    assert needs_regeneration(doc, LIGHTHOUSE, 800)
    assert echo_reasons(doc, LIGHTHOUSE, 800)[0].startswith("chapter 2: echo marker")


def test_english_echo_marker_flagged():
    doc = _doc("Narrative development of chapter 1 based on the description provided. " * 5)
    assert needs_regeneration(doc, LIGHTHOUSE, 800)


def test_verbatim_premise_flagged():
    doc = _doc(prose(1) + "\n\n" + LIGHTHOUSE.upper())
    assert echo_reasons(doc, LIGHTHOUSE, 800) == ["chapter 1: restates the premise verbatim"]


def test_implausibly_short_chapter_flagged():
    doc = _doc("The sea was calm.")
    assert echo_reasons(doc, LIGHTHOUSE, 800) == ["chapter 1: 4 words, expected at least 40"]


def test_synthesized_book_passes_the_guard():
    doc = fallback.synthesize_book(LIGHTHOUSE, 16, "fantasy", "adult")
    assert doc.title == "The Lighthouse Keeper"
    assert len(doc.chapters) == 16
    assert not needs_regeneration(doc, LIGHTHOUSE, 2500)
