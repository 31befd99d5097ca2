"""
Completion invoker – single-call and decomposed (chapter-by-chapter) modes.

make_plan() decides the mode from the token arithmetic:

    decomposed  if  ceil(chapters × max_words × 1.3) > token_budget

Decomposed mode runs one frame call (title + synopsis) and then one call
per chapter through a ChapterQueue, strictly in sequence with a fixed
delay between calls.  A chapter that fails for a transient reason becomes
a placeholder; auth / quota / model errors stop the book.
"""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Iterator, List, Literal, Sequence, TypeVar

from bookgen.config import TOKENS_PER_WORD
from bookgen.engine import fallback
from bookgen.engine.metrics import required_tokens, words_to_tokens
from bookgen.engine.repair import load_object, parse_chapter
from bookgen.errors import MalformedResponse, RateLimited, TransportError
from bookgen.generators.prompt_builders import (
    as_messages, build_chapter_prompt, build_frame_prompt,
)
from bookgen.llm.openai_wrapper import CompleteFn
from bookgen.models import Chapter, Completion, SizeProfile, Usage

logger = logging.getLogger(__name__)

FRAME_TOKENS = 800
CHAPTER_TOKEN_PAD = 200        # JSON wrapper + title
PREMISE_SUMMARY_CHARS = 1200
ABSORBED = (RateLimited, MalformedResponse, TransportError)

T = TypeVar("T")


@dataclass(frozen=True)
class GenerationPlan:
    mode: Literal["single", "decomposed"]
    model: str
    token_budget: int
    chapter_count: int
    min_words: int
    max_words: int
    chapter_tokens: int

    def profile_for(self, profile: SizeProfile) -> SizeProfile:
        """*profile* with the (possibly reduced) words-per-chapter of this plan."""
        if (profile.min_words, profile.max_words) == (self.min_words, self.max_words):
            return profile
        return profile.model_copy(update={"min_words": self.min_words, "max_words": self.max_words})


def make_plan(profile: SizeProfile, chapter_count: int, model: str, token_budget: int) -> GenerationPlan:
    need = required_tokens(chapter_count, profile.max_words)
    mode = "decomposed" if need > token_budget else "single"

    max_words = profile.max_words
    per_chapter = math.floor((token_budget - CHAPTER_TOKEN_PAD) / TOKENS_PER_WORD)
    if mode == "decomposed" and per_chapter < max_words:
        logger.info("Budget %d holds %d words per chapter; reducing from %d",
                    token_budget, per_chapter, max_words)
        max_words = max(1, per_chapter)
    min_words = min(profile.min_words, max_words)

    return GenerationPlan(
        mode=mode,
        model=model,
        token_budget=token_budget,
        chapter_count=chapter_count,
        min_words=min_words,
        max_words=max_words,
        chapter_tokens=min(token_budget, words_to_tokens(max_words) + CHAPTER_TOKEN_PAD),
    )


# ─── sequential chapter queue ────────────────────────────────────────────
@dataclass(frozen=True)
class ChapterTask:
    index: int
    total: int
    focus_hint: str


class ChapterQueue:
    """Chapters in order, *delay* seconds apart (never concurrently)."""

    def __init__(self, total: int, delay: float, sleep: Callable[[float], None] = time.sleep):
        self.tasks = [ChapterTask(i, total, fallback.focus_hint(i, total)) for i in range(1, total + 1)]
        self.delay = delay
        self.sleep = sleep

    def __iter__(self) -> Iterator[ChapterTask]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    def run(self, worker: Callable[[ChapterTask], T]) -> List[T]:
        results: List[T] = []
        for task in self.tasks:
            if results and self.delay > 0:
                self.sleep(self.delay)
            results.append(worker(task))
        return results


# ─── invoker ─────────────────────────────────────────────────────────────
class CompletionInvoker:
    def __init__(
        self,
        complete: CompleteFn,
        *,
        temperature: float = 0.75,
        max_retries: int = 3,
        backoff_base: float = 2.0,
        chapter_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.complete = complete
        self.temperature = temperature
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.chapter_delay = chapter_delay
        self.sleep = sleep

    def _call(self, prompt: str, model: str, max_tokens: int) -> Completion:
        for attempt in range(self.max_retries + 1):
            try:
                return self.complete(
                    model=model,
                    messages=as_messages(prompt),
                    max_tokens=max_tokens,
                    temperature=self.temperature,
                )
            except RateLimited:
                if attempt == self.max_retries:
                    raise
                wait = self.backoff_base * 2 ** attempt
                logger.warning("Rate limited by %s; retry %d/%d in %.1fs",
                               model, attempt + 1, self.max_retries, wait)
                self.sleep(wait)
        raise AssertionError("unreachable")  # pragma: no cover

    def generate(self, prompt: str, model: str, token_budget: int) -> Completion:
        logger.info("Single-call generation: model=%s max_tokens=%d", model, token_budget)
        return self._call(prompt, model, token_budget)

    def generate_chapter(
        self,
        premise_summary: str,
        chapter_index: int,
        total_chapters: int,
        focus_hint: str,
        *,
        plan: GenerationPlan,
        genre: str,
        audience: str,
        book_title: str | None = None,
        previous_titles: Sequence[str] = (),
    ) -> Completion:
        prompt = build_chapter_prompt(
            premise_summary, chapter_index, total_chapters, focus_hint,
            min_words=plan.min_words, max_words=plan.max_words,
            genre=genre, audience=audience,
            book_title=book_title, previous_titles=previous_titles,
        )
        return self._call(prompt, plan.model, plan.chapter_tokens)

    def generate_book(self, premise: str, plan: GenerationPlan, genre: str, audience: str) -> Completion:
        """Frame + chapters, assembled into one JSON text for the repairer."""
        usage = Usage()
        frame: dict = {}
        try:
            reply = self._call(build_frame_prompt(premise, plan.chapter_count, genre, audience),
                               plan.model, min(FRAME_TOKENS, plan.token_budget))
            usage += reply.usage
            frame = load_object(reply.text) or {}
        except ABSORBED as e:
            logger.warning("Frame call failed (%s); title and synopsis will be repaired", e.label)
        if self.chapter_delay > 0:
            self.sleep(self.chapter_delay)

        title = frame.get("title") if isinstance(frame.get("title"), str) else None
        synopsis = frame.get("synopsis") if isinstance(frame.get("synopsis"), str) else None
        summary = premise[:PREMISE_SUMMARY_CHARS]
        if synopsis:
            summary += f"\n\nSynopsis:\n{synopsis}"

        written: List[Chapter] = []

        def worker(task: ChapterTask) -> Chapter:
            nonlocal usage
            logger.info("Chapter %d/%d", task.index, task.total)
            try:
                reply = self.generate_chapter(
                    summary, task.index, task.total, task.focus_hint,
                    plan=plan, genre=genre, audience=audience,
                    book_title=title, previous_titles=[c.title for c in written],
                )
            except ABSORBED as e:
                logger.warning("Chapter %d failed (%s); using placeholder", task.index, e.label)
                chapter = fallback.placeholder_chapter(task.index, task.total)
            else:
                usage += reply.usage
                chapter = parse_chapter(reply.text, task.index, task.total)
            written.append(chapter)
            return chapter

        logger.info("Decomposed generation: model=%s chapters=%d max_tokens/chapter=%d",
                    plan.model, plan.chapter_count, plan.chapter_tokens)
        chapters = ChapterQueue(plan.chapter_count, self.chapter_delay, self.sleep).run(worker)

        text = json.dumps(
            {"title": title, "synopsis": synopsis, "chapters": [c.model_dump() for c in chapters]},
            ensure_ascii=False,
        )
        return Completion(text=text, model=plan.model, usage=usage)
