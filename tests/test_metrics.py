# tests/test_metrics.py
from bookgen.config import SIZE_PROFILES
from bookgen.engine.metrics import calculate_metrics, required_tokens, summarize
from bookgen.models import BookDocument, Chapter


def _doc(*lengths):
    return BookDocument(
        title="T", synopsis="S",
        chapters=[Chapter(title=f"C{i}", content="x" * n) for i, n in enumerate(lengths, 1)],
    )


def test_calculate_metrics_small():
    m = calculate_metrics(SIZE_PROFILES["small"], 4)
    assert (m.min_words, m.max_words) == (3200, 4800)
    assert (m.min_pages, m.max_pages) == (13, 20)
    assert m.estimated_tokens == 5200


def test_required_tokens_rounds_up():
    assert required_tokens(1, 1) == 2
    assert required_tokens(4, 1200) == 6240


def test_summarize_counts_chapter_characters():
    stats = summarize(_doc(1800, 1800, 1))
    assert stats.total_characters == 3601
    assert stats.estimated_pages == 3
    assert stats.estimated_reading_minutes == 1
    assert stats.reading_time_label == "1 minute"


def test_summarize_is_idempotent():
    doc = _doc(5000, 12000)
    assert summarize(doc) == summarize(doc)
