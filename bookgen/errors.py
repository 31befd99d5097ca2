"""
Failure taxonomy for the generation pipeline.

Every error carries a short user-facing label, a one-line remediation
hint and the HTTP-style status it maps to.  `error_payload()` turns any
exception into the JSON body returned by the CLI and the API.
"""

from __future__ import annotations

from typing import Any, Dict, List


class BookGenError(Exception):
    label = "Internal error while generating the book"
    solution = "Try again in a few moments."
    status_code = 500
    retryable = False

    def __init__(self, message: str | None = None, *, issues: List[str] | None = None):
        super().__init__(message or self.label)
        self.issues = list(issues or [])


class ValidationError(BookGenError):
    label = "Invalid request"
    solution = "Fix the highlighted fields and submit again."
    status_code = 400


class AuthError(BookGenError):
    label = "Invalid API key"
    solution = "Check OPENAI_API_KEY in your environment or .env file."
    status_code = 401


class QuotaExceeded(BookGenError):
    label = "Insufficient quota"
    solution = "Check your balance at platform.openai.com/usage."
    status_code = 429


class RateLimited(BookGenError):
    label = "Rate limit exceeded"
    solution = "Wait a few minutes and try again."
    status_code = 429
    retryable = True


class ModelUnavailable(BookGenError):
    label = "Model not available"
    solution = "Check that your account has access to the requested model."
    status_code = 400


class MalformedResponse(BookGenError):
    label = "Malformed completion"


class TransportError(BookGenError):
    label = "Could not reach the completion service"


class OwnershipError(BookGenError):
    label = "This book belongs to another user"
    solution = "Sign in with the account that created the book."
    status_code = 403


class RecordNotFound(BookGenError):
    label = "Book not found"
    solution = "Check the book id; it may have been deleted."
    status_code = 404


class ConfigError(BookGenError):
    label = "Invalid configuration"
    solution = "Fix the size profiles, BOOKGEN_MODEL_CEILINGS or BOOKGEN_COMPLETION_CAPS and restart."


class UnknownError(BookGenError):
    label = "Internal error while generating the book"
    solution = "Try again; contact support if it keeps happening."


def error_payload(exc: BaseException, development: bool = False) -> tuple[int, Dict[str, Any]]:
    """Return (status, body) for *exc*.  Raw exception text only in development."""
    if not isinstance(exc, BookGenError):
        exc_ = UnknownError()
        body: Dict[str, Any] = {"error": exc_.label, "solution": exc_.solution}
        if development:
            body["details"] = f"{type(exc).__name__}: {exc}"
        return exc_.status_code, body

    body = {"error": exc.label, "solution": exc.solution}
    if exc.issues:
        body["issues"] = exc.issues
    if development and str(exc) != exc.label:
        body["details"] = str(exc)
    return exc.status_code, body
