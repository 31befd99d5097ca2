"""
store.py – per-user book records

JsonRecordStore keeps one JSON list per user (``books_<user>.json`` under
the data directory) and is read / replaced as a whole.  An id with
characters outside [A-Za-z0-9_.-] is escaped and suffixed with a digest of
the raw id.  BookLibrary sits on top of it and checks ownership before
every read or write.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
import logging
import os
import re
import uuid
from pathlib import Path
from typing import Iterator, List

from bookgen.config import get_profile
from bookgen.engine import fallback
from bookgen.engine.repair import parse_chapter
from bookgen.errors import OwnershipError, RecordNotFound, ValidationError
from bookgen.llm.invoker import make_plan
from bookgen.models import (
    BookDocument, BookMetadata, BookRecord, Chapter, GenerationRequest,
)
from bookgen.utils.validate import validate_premise

logger = logging.getLogger(__name__)

_USER_RE = re.compile(r"[^A-Za-z0-9_.-]")


def user_key(user_id: str) -> str:
    """File-name key for *user_id*; escaped ids carry a digest of the raw id."""
    if not _USER_RE.search(user_id):
        return user_id
    digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:16]
    return f"{_USER_RE.sub('_', user_id)}+{digest}"


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


class JsonRecordStore:
    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _path(self, user_id: str) -> Path:
        return self.data_dir / f"books_{user_key(user_id)}.json"

    def list_records(self, user_id: str) -> List[BookRecord]:
        path = self._path(user_id)
        if not path.exists():
            return []
        raw = json.loads(path.read_text(encoding="utf-8"))
        return [BookRecord.model_validate(r) for r in raw]

    def save_all(self, user_id: str, records: List[BookRecord]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(user_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(
            json.dumps([r.model_dump(by_alias=True) for r in records], ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp, path)

    def all_records(self) -> Iterator[BookRecord]:
        if not self.data_dir.exists():
            return
        for path in sorted(self.data_dir.glob("books_*.json")):
            for r in json.loads(path.read_text(encoding="utf-8")):
                yield BookRecord.model_validate(r)


class BookLibrary:
    def __init__(self, store: JsonRecordStore, pipeline=None):
        self.store = store
        self.pipeline = pipeline

    # ─── reads ───────────────────────────────────────────────────────────
    def list(self, user_id: str) -> List[BookRecord]:
        owned = [r for r in self.store.list_records(user_id) if r.owner_id == user_id]
        return sorted(owned, key=lambda r: r.created_at, reverse=True)

    def get(self, user_id: str, book_id: str) -> BookRecord:
        for record in self.store.list_records(user_id):
            if record.id == book_id:
                if record.owner_id != user_id:
                    raise OwnershipError(f"Book {book_id} is owned by another user")
                return record
        if any(r.id == book_id for r in self.store.all_records()):
            logger.warning("User %s tried to access book %s", user_id, book_id)
            raise OwnershipError(f"Book {book_id} is owned by another user")
        raise RecordNotFound(f"No book with id {book_id}")

    # ─── writes ──────────────────────────────────────────────────────────
    def create(
        self,
        user_id: str,
        request: GenerationRequest,
        document: BookDocument,
        metadata: BookMetadata | None = None,
    ) -> BookRecord:
        record = BookRecord(
            id=uuid.uuid4().hex,
            premise=validate_premise(request.description).sanitized,
            request=request,
            document=document,
            owner_id=user_id,
            created_at=_now(),
            metadata=metadata,
        )
        records = self.store.list_records(user_id)
        records.append(record)
        self.store.save_all(user_id, records)
        logger.info("Saved book %s (%r) for user %s", record.id, document.title, user_id)
        return record

    def _replace(self, user_id: str, record: BookRecord, document: BookDocument) -> BookRecord:
        updated = record.model_copy(update={"document": document, "updated_at": _now()})
        records = [updated if r.id == record.id else r for r in self.store.list_records(user_id)]
        self.store.save_all(user_id, records)
        return updated

    def update(self, user_id: str, book_id: str, *, title: str | None = None,
               synopsis: str | None = None) -> BookRecord:
        record = self.get(user_id, book_id)
        changes = {}
        if title is not None:
            if not title.strip():
                raise ValidationError("Title cannot be empty", issues=["Title cannot be empty"])
            changes["title"] = title.strip()
        if synopsis is not None:
            if not synopsis.strip():
                raise ValidationError("Synopsis cannot be empty", issues=["Synopsis cannot be empty"])
            changes["synopsis"] = synopsis.strip()
        return self._replace(user_id, record, record.document.model_copy(update=changes))

    def _chapter_index(self, record: BookRecord, index: int) -> int:
        if not 1 <= index <= len(record.document.chapters):
            raise ValidationError(
                f"Chapter {index} out of range",
                issues=[f"Chapter must be between 1 and {len(record.document.chapters)}"],
            )
        return index - 1

    def edit_chapter(self, user_id: str, book_id: str, index: int, *, title: str | None = None,
                     content: str | None = None) -> BookRecord:
        record = self.get(user_id, book_id)
        i = self._chapter_index(record, index)
        old = record.document.chapters[i]
        chapter = Chapter(
            title=title.strip() if title and title.strip() else old.title,
            content=content.strip() if content and content.strip() else old.content,
        )
        chapters = list(record.document.chapters)
        chapters[i] = chapter
        return self._replace(user_id, record, record.document.model_copy(update={"chapters": chapters}))

    def add_chapter(self, user_id: str, book_id: str, title: str | None = None,
                    content: str | None = None) -> BookRecord:
        record = self.get(user_id, book_id)
        n = len(record.document.chapters) + 1
        chapter = Chapter(
            title=(title or "").strip() or f"Chapter {n}",
            content=(content or "").strip() or fallback.placeholder_content(n, n),
        )
        chapters = list(record.document.chapters) + [chapter]
        return self._replace(user_id, record, record.document.model_copy(update={"chapters": chapters}))

    def remove_chapter(self, user_id: str, book_id: str, index: int) -> BookRecord:
        record = self.get(user_id, book_id)
        i = self._chapter_index(record, index)
        if len(record.document.chapters) == 1:
            raise ValidationError("A book needs at least one chapter",
                                  issues=["Cannot remove the only chapter"])
        chapters = list(record.document.chapters)
        del chapters[i]
        return self._replace(user_id, record, record.document.model_copy(update={"chapters": chapters}))

    def regenerate_chapter(self, user_id: str, book_id: str, index: int) -> BookRecord:
        """Rewrite one chapter with a fresh chapter call."""
        if self.pipeline is None:
            raise RuntimeError("BookLibrary needs a pipeline to regenerate chapters")
        record = self.get(user_id, book_id)
        i = self._chapter_index(record, index)
        doc = record.document
        total = len(doc.chapters)
        profile = get_profile(record.request.size)
        probe = self.pipeline.prober.probe(profile.model, profile.token_budget)
        plan = make_plan(profile, total, probe.model, probe.token_budget)

        summary = f"{record.premise[:1200]}\n\nSynopsis:\n{doc.synopsis}"
        reply = self.pipeline.invoker.generate_chapter(
            summary, index, total, fallback.focus_hint(index, total),
            plan=plan, genre=record.request.genre, audience=record.request.audience,
            book_title=doc.title, previous_titles=[c.title for c in doc.chapters[:i]],
        )
        chapters = list(doc.chapters)
        chapters[i] = parse_chapter(reply.text, index, total)
        logger.info("Regenerated chapter %d of book %s", index, book_id)
        return self._replace(user_id, record, doc.model_copy(update={"chapters": chapters}))

    def delete(self, user_id: str, book_id: str) -> None:
        record = self.get(user_id, book_id)
        self.store.save_all(user_id, [r for r in self.store.list_records(user_id) if r.id != record.id])
        logger.info("Deleted book %s for user %s", book_id, user_id)
