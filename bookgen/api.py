"""
api.py – HTTP surface

    uvicorn --factory bookgen.api:create_app     (or: python -m bookgen serve)

POST /api/generate-book runs the pipeline; when the caller sends an
X-User-Id header the book is also saved to that user's records.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import Body, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse

from bookgen.config import SIZE_PROFILES, Settings
from bookgen.engine.metrics import calculate_metrics
from bookgen.engine.pipeline import BookPipeline, handle_generate, parse_request
from bookgen.errors import BookGenError, ValidationError, error_payload
from bookgen.export import export
from bookgen.store import BookLibrary, JsonRecordStore
from bookgen.templates import TEMPLATES

logger = logging.getLogger(__name__)


def _require_user(user_id: str | None) -> str:
    if not user_id or not user_id.strip():
        raise ValidationError("Missing user id", issues=["The X-User-Id header is required"])
    return user_id.strip()


def create_app(settings: Settings | None = None, pipeline: BookPipeline | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    settings.validate_profiles()
    pipeline = pipeline or BookPipeline.from_settings(settings)
    library = BookLibrary(JsonRecordStore(settings.data_dir), pipeline)

    app = FastAPI(title="bookgen", version="0.1.0")
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.library = library

    @app.exception_handler(BookGenError)
    async def _bookgen_error(request: Request, exc: BookGenError):
        status, body = error_payload(exc, settings.development)
        return JSONResponse(body, status_code=status)

    @app.exception_handler(RequestValidationError)
    async def _request_error(request: Request, exc: RequestValidationError):
        issues = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
        status, body = error_payload(ValidationError("Invalid request", issues=issues), settings.development)
        return JSONResponse(body, status_code=status)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        status, body = error_payload(exc, settings.development)
        return JSONResponse(body, status_code=status)

    @app.post("/api/generate-book")
    def generate_book(
        body: Dict[str, Any] = Body(...),
        x_user_id: str | None = Header(None),
    ):
        status, payload, result = handle_generate(pipeline, body)
        if result is not None and x_user_id:
            record = library.create(x_user_id, parse_request(body), result.document, result.metadata)
            payload["bookId"] = record.id
        return JSONResponse(payload, status_code=status)

    @app.get("/api/sizes")
    def sizes() -> List[Dict[str, Any]]:
        out = []
        for p in SIZE_PROFILES.values():
            m = calculate_metrics(p, p.chapters)
            item = p.model_dump(by_alias=True)
            item["estimatedTokens"] = m.estimated_tokens
            item["estimatedPages"] = f"{m.min_pages}-{m.max_pages}"
            out.append(item)
        return out

    @app.get("/api/templates")
    def templates() -> List[Dict[str, Any]]:
        return [t.model_dump(by_alias=True) for t in TEMPLATES]

    @app.get("/api/books")
    def list_books(x_user_id: str | None = Header(None)):
        user = _require_user(x_user_id)
        return [
            {
                "id": r.id,
                "title": r.document.title,
                "size": r.request.size,
                "chapters": len(r.document.chapters),
                "createdAt": r.created_at,
            }
            for r in library.list(user)
        ]

    @app.get("/api/books/{book_id}")
    def get_book(book_id: str, x_user_id: str | None = Header(None)):
        return library.get(_require_user(x_user_id), book_id).model_dump(by_alias=True)

    @app.delete("/api/books/{book_id}", status_code=204)
    def delete_book(book_id: str, x_user_id: str | None = Header(None)):
        library.delete(_require_user(x_user_id), book_id)

    @app.get("/api/books/{book_id}/export/{fmt}")
    def export_book(book_id: str, fmt: str, x_user_id: str | None = Header(None)):
        user = _require_user(x_user_id)
        record = library.get(user, book_id)
        path = export(record.document, fmt, settings.data_dir / "exports" / record.id)
        return FileResponse(path, filename=path.name)

    return app

