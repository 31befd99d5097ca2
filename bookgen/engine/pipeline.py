# engine/pipeline.py
"""
pipeline.py – the book-generation request pipeline

    prepare → probe → generate → repair → guard → report

Each stage takes and returns immutable values.  The originality guard's
"substitute a synthesized book" branch is terminal: no second API call
is made and the guard is not re-run on the substitute.
"""

from __future__ import annotations

import datetime as dt
import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

from pydantic import ValidationError as ModelValidationError

from bookgen.config import Settings, get_profile
from bookgen.engine import fallback
from bookgen.engine.metrics import BookStatistics, summarize
from bookgen.engine.originality import needs_regeneration
from bookgen.engine.repair import parse_book
from bookgen.errors import (
    BookGenError, MalformedResponse, ModelUnavailable, TransportError,
    ValidationError, error_payload,
)
from bookgen.generators.prompt_builders import build_book_prompt
from bookgen.llm import openai_wrapper
from bookgen.llm.invoker import CompletionInvoker, GenerationPlan, make_plan
from bookgen.llm.openai_wrapper import CompleteFn
from bookgen.llm.prober import ModelProber, ProbeResult
from bookgen.models import (
    BookDocument, BookInfo, BookMetadata, Completion, GenerationInfo,
    GenerationRequest, SizeProfile, TechnicalInfo,
)
from bookgen.utils.validate import validate_premise

logger = logging.getLogger(__name__)


# ─── stage values ────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Prepared:
    request: GenerationRequest
    premise: str
    issues: Tuple[str, ...]
    profile: SizeProfile
    chapter_count: int


@dataclass(frozen=True)
class Generated:
    plan: GenerationPlan
    probe: ProbeResult
    completion: Completion


@dataclass(frozen=True)
class Guarded:
    document: BookDocument
    substituted: bool


@dataclass(frozen=True)
class GenerationResult:
    document: BookDocument
    metadata: BookMetadata
    statistics: BookStatistics

    def to_response(self) -> Dict[str, Any]:
        body = self.document.model_dump(by_alias=True)
        body["metadata"] = self.metadata.model_dump(by_alias=True)
        return body


# ─── pipeline ────────────────────────────────────────────────────────────
class BookPipeline:
    def __init__(
        self,
        complete: CompleteFn,
        settings: Settings | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or Settings()
        self.clock = clock
        self.prober = ModelProber(complete, self.settings.baseline_model, self.settings.fallback_budget)
        self.invoker = CompletionInvoker(
            complete,
            temperature=self.settings.temperature,
            max_retries=self.settings.max_retries,
            backoff_base=self.settings.backoff_base,
            chapter_delay=self.settings.chapter_delay,
            sleep=sleep,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "BookPipeline":
        settings.validate_profiles()
        return cls(functools.partial(openai_wrapper.complete, settings=settings), settings)

    # ① validate + size
    def prepare(self, request: GenerationRequest) -> Prepared:
        check = validate_premise(request.description)
        check.raise_for_errors()
        profile = get_profile(request.size)
        count = request.chapter_count or profile.chapters
        logger.info("Request: size=%s chapters=%d genre=%s audience=%s premise=%d chars",
                    profile.key, count, request.genre, request.audience, len(check.sanitized))
        for issue in check.errors:
            logger.warning("Premise: %s", issue)
        return Prepared(request, check.sanitized, tuple(check.errors), profile, count)

    # ② model availability
    def probe(self, prepared: Prepared) -> ProbeResult:
        return self.prober.probe(prepared.profile.model, prepared.profile.token_budget)

    # ③ completion
    def _invoke(self, prepared: Prepared, probe: ProbeResult) -> Generated:
        plan = make_plan(prepared.profile, prepared.chapter_count, probe.model, probe.token_budget)
        req = prepared.request
        if plan.mode == "single":
            prompt = build_book_prompt(
                prepared.premise, plan.profile_for(prepared.profile),
                prepared.chapter_count, req.genre, req.audience,
            )
            completion = self.invoker.generate(prompt, plan.model, plan.token_budget)
        else:
            completion = self.invoker.generate_book(prepared.premise, plan, req.genre, req.audience)
        return Generated(plan, probe, completion)

    def generate(self, prepared: Prepared, probe: ProbeResult) -> Generated:
        try:
            return self._invoke(prepared, probe)
        except ModelUnavailable:
            if probe.model == self.prober.baseline_model:
                raise
            logger.warning("Model %s unavailable at generation time; retrying with %s",
                           probe.model, self.prober.baseline_model)
            return self.generate(prepared, self.prober.fallback(probe.token_budget))
        except (MalformedResponse, TransportError) as e:
            logger.error("Completion failed (%s); continuing with repair fallback", e)
            plan = make_plan(prepared.profile, prepared.chapter_count, probe.model, probe.token_budget)
            return Generated(plan, probe, Completion(text="", model=probe.model))

    # ④ repair
    def repair(self, prepared: Prepared, generated: Generated) -> BookDocument:
        return parse_book(generated.completion.text, prepared.chapter_count)

    # ⑤ originality
    def guard(self, prepared: Prepared, generated: Generated, document: BookDocument) -> Guarded:
        if not needs_regeneration(document, prepared.premise, generated.plan.min_words):
            return Guarded(document, False)
        req = prepared.request
        substitute = fallback.synthesize_book(prepared.premise, prepared.chapter_count, req.genre, req.audience)
        return Guarded(substitute, True)

    # ⑥ statistics + metadata
    def report(self, prepared: Prepared, generated: Generated, guarded: Guarded, started: float) -> GenerationResult:
        stats = summarize(guarded.document)
        req = prepared.request
        metadata = BookMetadata(
            generation=GenerationInfo(
                model=generated.completion.model,
                tokens_used=generated.completion.usage.total_tokens,
                generation_time_ms=int((self.clock() - started) * 1000),
                timestamp=dt.datetime.now(dt.timezone.utc).isoformat(),
            ),
            book_info=BookInfo(
                size=prepared.profile.label,
                estimated_pages=stats.estimated_pages,
                estimated_reading_time=stats.reading_time_label,
                total_chapters=len(guarded.document.chapters),
                total_characters=stats.total_characters,
                genre=req.genre,
                audience=req.audience,
            ),
            technical=TechnicalInfo(
                mode=generated.plan.mode,
                probed=generated.probe.probed,
                model_available=generated.probe.available,
                token_budget=generated.plan.token_budget,
                originality_fallback=guarded.substituted,
            ),
            issues=list(prepared.issues),
        )
        logger.info("Book ready: %r | %d chapters | %d chars | ~%d pages | %s",
                    guarded.document.title, len(guarded.document.chapters),
                    stats.total_characters, stats.estimated_pages, generated.completion.model)
        return GenerationResult(guarded.document, metadata, stats)

    def run(self, request: GenerationRequest) -> GenerationResult:
        started = self.clock()
        prepared = self.prepare(request)
        generated = self.generate(prepared, self.probe(prepared))
        document = self.repair(prepared, generated)
        guarded = self.guard(prepared, generated, document)
        return self.report(prepared, generated, guarded, started)


# ─── request boundary ────────────────────────────────────────────────────
def parse_request(body: Any) -> GenerationRequest:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object",
                              issues=["The request body must be a JSON object"])
    if not body.get("description"):
        raise ValidationError("Description is required", issues=["Description is required"])
    try:
        return GenerationRequest.model_validate(body)
    except ModelValidationError as e:
        issues = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError("Invalid request", issues=issues) from e


def handle_generate(pipeline: BookPipeline, body: Any) -> Tuple[int, Dict[str, Any], GenerationResult | None]:
    """Run one request; return (status, response body, result or None)."""
    dev = pipeline.settings.development
    try:
        result = pipeline.run(parse_request(body))
    except BookGenError as e:
        logger.error("Generation failed: %s (%s)", e.label, e)
        status, payload = error_payload(e, dev)
        return status, payload, None
    except Exception as e:
        logger.exception("Unhandled error during generation")
        status, payload = error_payload(e, dev)
        return status, payload, None
    return 200, result.to_response(), result
