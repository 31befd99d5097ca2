# engine/repair.py
"""
Turn raw completion text into a well-formed BookDocument.

Structural tiers, tried in order until one yields an object:

    strict_json        whole text is the JSON book (code fences tolerated)
    embedded_json      first balanced {...} inside prose that parses
    heuristic_sections headings / blank lines → pseudo-chapters
    synthesized        placeholder book

Field repair then guarantees a non-empty title and synopsis, a title and
enough content for every chapter, and exactly the expected chapter count.
parse_book() never raises.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Sequence, Tuple

from jsonschema import ValidationError as SchemaError

from bookgen.engine import fallback
from bookgen.models import BookDocument, Chapter
from bookgen.utils.validate import maybe_unwrap, validate_book

logger = logging.getLogger(__name__)

MIN_CHAPTER_CHARS = 200
MIN_SYNOPSIS_CHARS = 40
MAX_TITLE_CHARS = 200
_MAX_EMBEDDED_ATTEMPTS = 20

FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$", re.S)
HEADING_RE = re.compile(
    r"^[ \t]*(?:#{1,6}[ \t]*(?P<md>[^\n]+?)|(?P<word>(?:chapter|cap[ií]tulo)[ \t]+\w+[^\n]*?))[ \t]*:?[ \t]*$",
    re.I | re.M,
)
CHAPTER_WORD_RE = re.compile(r"^(?:chapter|cap[ií]tulo)\s+\w+", re.I)
SYNOPSIS_RE = re.compile(r"^(?:synopsis|sinopse|summary|resumo)$", re.I)
_JSON_STR = r'(?:[^"\\]|\\.)*'
CHAPTER_PAIR_RE = re.compile(
    rf'"title"\s*:\s*"(?P<title>{_JSON_STR})"\s*,\s*"content"\s*:\s*"(?P<content>{_JSON_STR})"',
    re.S,
)
_DEGENERATE = {
    "", "title", "untitled", "book title", "chapter title", "null", "none", "n/a",
    "título", "titulo", "sem título",
}

Strategy = Callable[[str, int], "Dict[str, Any] | None"]


# ─── helpers ─────────────────────────────────────────────────────────────
def strip_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = FENCE_RE.sub("", raw).strip()
    return raw


def _as_book(obj: Any) -> Dict[str, Any] | None:
    obj = maybe_unwrap(obj)
    if not isinstance(obj, dict):
        return None
    try:
        validate_book(obj)
    except SchemaError as e:
        logger.debug("JSON does not look like a book: %s", e.message)
        return None
    return obj


def balanced_objects(text: str) -> List[str]:
    """Every balanced {...} span, in order of its opening brace."""
    spans: List[str] = []
    start = text.find("{")
    while start != -1 and len(spans) < _MAX_EMBEDDED_ATTEMPTS:
        depth, in_str, esc = 0, False, False
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if esc:
                    esc = False
                elif ch == "\\":
                    esc = True
                elif ch == '"':
                    in_str = False
            elif ch == '"':
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    spans.append(text[start : i + 1])
                    break
        start = text.find("{", start + 1)
    return spans


def load_object(raw: str) -> Dict[str, Any] | None:
    """Best-effort JSON object from *raw*: whole text first, then embedded."""
    text = strip_fences(raw or "")
    try:
        obj = json.loads(text)
        if isinstance(obj, dict):
            return obj
    except json.JSONDecodeError:
        pass
    for span in balanced_objects(text):
        try:
            obj = json.loads(span)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


# ─── tiers ───────────────────────────────────────────────────────────────
def strict_json(raw: str, expected: int) -> Dict[str, Any] | None:
    try:
        return _as_book(json.loads(strip_fences(raw)))
    except json.JSONDecodeError:
        return None


def embedded_json(raw: str, expected: int) -> Dict[str, Any] | None:
    for span in balanced_objects(raw):
        try:
            book = _as_book(json.loads(span))
        except json.JSONDecodeError:
            continue
        if book is not None:
            return book
    return None


def _sections(text: str) -> List[Tuple[str | None, str]]:
    marks = [m for m in HEADING_RE.finditer(text) if len(m.group(0).strip()) <= 100]
    if not marks:
        return [(None, p.strip()) for p in re.split(r"\n\s*\n", text) if p.strip()]
    out: List[Tuple[str | None, str]] = []
    preface = text[: marks[0].start()].strip()
    if preface:
        out.append((None, preface))
    for m, nxt in zip(marks, marks[1:] + [None]):
        heading = (m.group("md") or m.group("word")).strip().strip("*_ ")
        body = text[m.end() : nxt.start() if nxt else len(text)].strip()
        out.append((heading, body))
    return out


def _group(paragraphs: Sequence[str], n: int) -> List[str]:
    if len(paragraphs) <= n:
        return list(paragraphs)
    size, extra = divmod(len(paragraphs), n)
    groups, i = [], 0
    for g in range(n):
        step = size + (1 if g < extra else 0)
        groups.append("\n\n".join(paragraphs[i : i + step]))
        i += step
    return groups


def _unquote(s: str) -> str:
    try:
        return json.loads(f'"{s}"')
    except json.JSONDecodeError:
        return s.replace('\\"', '"').replace("\\n", "\n")


def salvage_truncated_json(text: str) -> Dict[str, Any] | None:
    """Keep every complete chapter of a JSON book cut off mid-stream."""
    pairs = list(CHAPTER_PAIR_RE.finditer(text))
    if not pairs:
        return None
    head = text[: pairs[0].start()]
    title = re.search(rf'"title"\s*:\s*"({_JSON_STR})"', head)
    synopsis = re.search(rf'"synopsis"\s*:\s*"({_JSON_STR})"', head)
    return {
        "title": _unquote(title.group(1)) if title else None,
        "synopsis": _unquote(synopsis.group(1)) if synopsis else None,
        "chapters": [
            {"title": _unquote(m.group("title")), "content": _unquote(m.group("content"))}
            for m in pairs
        ],
    }


def heuristic_sections(raw: str, expected: int) -> Dict[str, Any] | None:
    text = strip_fences(raw)
    if len(re.sub(r"\s", "", text)) < MIN_CHAPTER_CHARS:
        return None

    if text.lstrip().startswith("{"):
        salvaged = salvage_truncated_json(text)
        if salvaged:
            return salvaged

    sections = _sections(text)
    title = synopsis = None

    # a short opening line or a non-chapter heading reads as the book title
    head, body = sections[0]
    if head is None and "\n" not in body and len(body) <= 100 and not body.endswith((".", "!", "?", ":")):
        title = body; sections = sections[1:]
    elif head is not None and not CHAPTER_WORD_RE.match(head) and len(sections) > 1:
        title = head
        if body:
            synopsis = body
        sections = sections[1:]

    for h, b in sections:
        if h is not None and SYNOPSIS_RE.match(h) and b:
            synopsis = b
    headed = [(h, b) for h, b in sections if h is not None and b and not SYNOPSIS_RE.match(h)]
    if headed:
        if sections and sections[0][0] is None and synopsis is None:
            synopsis = sections[0][1]
        chapters = [{"title": h, "content": b} for h, b in headed]
    else:
        paragraphs = [b for _, b in sections if b]
        chapters = [{"title": None, "content": c} for c in _group(paragraphs, expected)]

    if not chapters:
        return None
    return {"title": title, "synopsis": synopsis, "chapters": chapters}


def synthesized(raw: str, expected: int) -> Dict[str, Any]:
    return fallback.placeholder_book(expected).model_dump()


STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("strict_json", strict_json),
    ("embedded_json", embedded_json),
    ("heuristic_sections", heuristic_sections),
    ("synthesized", synthesized),
)


# ─── field repair ────────────────────────────────────────────────────────
def _text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        return "\n\n".join(_text(v) for v in value if _text(v))
    return ""


def is_degenerate_title(title: str) -> bool:
    t = title.strip().strip('"').strip()
    return (
        t.lower() in _DEGENERATE
        or (t.startswith("<") and t.endswith(">"))
        or len(t) > MAX_TITLE_CHARS
    )


def repair_chapter(raw: Any, index: int, total: int) -> Chapter:
    if isinstance(raw, dict):
        title = _text(raw.get("title"))
        content = _text(raw.get("content") or raw.get("text") or raw.get("body"))
    else:
        title, content = "", _text(raw)

    if not title or is_degenerate_title(title):
        title = f"Chapter {index}"
    if len(content) < MIN_CHAPTER_CHARS:
        logger.warning("Chapter %d content too short (%d chars); synthesizing", index, len(content))
        content = fallback.placeholder_content(index, total)
    return Chapter(title=title, content=content)


def repair_fields(data: Dict[str, Any], expected: int) -> BookDocument:
    title = _text(data.get("title"))
    if is_degenerate_title(title):
        logger.warning("Missing or degenerate title; using placeholder")
        title = fallback.PLACEHOLDER_TITLE

    synopsis = _text(data.get("synopsis"))
    if len(synopsis) < MIN_SYNOPSIS_CHARS:
        logger.warning("Missing or short synopsis; using placeholder")
        synopsis = fallback.PLACEHOLDER_SYNOPSIS

    raw_chapters = data.get("chapters")
    if not isinstance(raw_chapters, list):
        raw_chapters = []
    if len(raw_chapters) != expected:
        logger.warning("Got %d chapters, expected %d; reconciling", len(raw_chapters), expected)

    chapters = [repair_chapter(c, i, expected) for i, c in enumerate(raw_chapters[:expected], 1)]
    while len(chapters) < expected:
        chapters.append(fallback.placeholder_chapter(len(chapters) + 1, expected))

    return BookDocument(title=title, synopsis=synopsis, chapters=chapters)


# ─── public API ──────────────────────────────────────────────────────────
def parse_book(raw: str | None, expected: int) -> BookDocument:
    raw = raw or ""
    logger.debug("Raw completion (first 500 chars): %s", raw[:500])
    for name, strategy in STRATEGIES:
        data = strategy(raw, expected)
        if data is not None:
            break
    logger.info("Response parsed with %s", name)
    return repair_fields(data, expected)


def parse_chapter(raw: str | None, index: int, total: int) -> Chapter:
    """Single-chapter variant used by decomposed generation."""
    obj = load_object(raw or "")
    if obj is not None:
        obj = maybe_unwrap(obj)
        if isinstance(obj.get("chapters"), list) and obj["chapters"]:
            obj = obj["chapters"][0]
        if isinstance(obj, dict) and ("content" in obj or "text" in obj):
            return repair_chapter(obj, index, total)

    text = strip_fences(raw or "")
    title = ""
    first, _, rest = text.partition("\n")
    m = HEADING_RE.match(first)
    if m and rest.strip():
        title, text = (m.group("md") or m.group("word")).strip().strip("*_ "), rest.strip()
    return repair_chapter({"title": title, "content": text}, index, total)
