"""
Premise validation + book schema helpers.

Usage (inside other modules):
    from bookgen.utils.validate import validate_premise, validate_book
    check = validate_premise(text); check.raise_for_errors()
    validate_book(data)        # raises jsonschema.ValidationError on failure
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

import jsonschema
from importlib import resources as pkg

from bookgen.errors import ValidationError

MIN_PREMISE_CHARS = 15
MAX_PREMISE_CHARS = 10_000
MIN_PREMISE_WORDS = 5

_WRAPPER_KEYS = {"book", "livro", "result", "data", "response", "output"}


# ─── premise ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class PremiseCheck:
    sanitized: str
    errors: List[str] = field(default_factory=list)
    blocking: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.blocking

    def raise_for_errors(self) -> None:
        if self.blocking:
            raise ValidationError("Invalid description", issues=self.blocking)


def validate_premise(premise: str | None) -> PremiseCheck:
    """
    Trim and bound the premise.

    Too short / too vague are blocking; an over-long premise is truncated
    and reported, but generation may proceed.
    """
    errors: List[str] = []
    blocking: List[str] = []
    sanitized = (premise or "").strip()

    if len(sanitized) < MIN_PREMISE_CHARS:
        msg = f"Premise too short (minimum {MIN_PREMISE_CHARS} characters)"
        errors.append(msg); blocking.append(msg)

    if len(sanitized) > MAX_PREMISE_CHARS:
        errors.append(
            f"Premise too long ({len(sanitized)} characters), "
            f"truncated to {MAX_PREMISE_CHARS:,} characters"
        )
        sanitized = sanitized[:MAX_PREMISE_CHARS].rstrip()

    if len(sanitized.split()) < MIN_PREMISE_WORDS:
        msg = f"Premise too vague (minimum {MIN_PREMISE_WORDS} words)"
        errors.append(msg); blocking.append(msg)

    return PremiseCheck(sanitized=sanitized, errors=errors, blocking=blocking)


# ─── book schema ─────────────────────────────────────────────────────────
def maybe_unwrap(obj: Any) -> Any:
    """
    LLMs sometimes wrap the real payload:

        {"book": { ... }}

    Accept that pattern and unwrap it.  Otherwise return the object as-is.
    """
    if (
        isinstance(obj, dict)
        and len(obj) == 1
        and next(iter(obj)).lower() in _WRAPPER_KEYS
        and isinstance(next(iter(obj.values())), dict)
    ):
        return next(iter(obj.values()))
    return obj


def _load_schema(name: str) -> Dict[str, Any]:
    text = pkg.files("bookgen").joinpath("schemas").joinpath(name).read_text(encoding="utf-8")
    return json.loads(text)


_book_schema = _load_schema("book.schema.json")
_strict_book_schema = _load_schema("book.strict.schema.json")


def validate_book(data: Any) -> None:
    """Loose shape check for raw model output."""
    jsonschema.validate(data, _book_schema)


def validate_repaired_book(data: Any) -> None:
    """Contract check for a repaired document (all fields present)."""
    jsonschema.validate(data, _strict_book_schema)
