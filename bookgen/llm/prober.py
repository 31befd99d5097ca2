"""
Model availability probe.

A ten-token trial call tells us whether the account can use a model
before the full-size request is committed.  probe() never raises: the
caller always gets a usable (model, budget) pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bookgen.config import BASELINE_MODEL, FALLBACK_TOKEN_BUDGET
from bookgen.errors import BookGenError
from bookgen.llm.openai_wrapper import CompleteFn

logger = logging.getLogger(__name__)

PROBE_TOKENS = 10
PROBE_WORD = "AVAILABLE"


@dataclass(frozen=True)
class ProbeResult:
    available: bool
    model: str
    token_budget: int
    probed: bool = True


class ModelProber:
    def __init__(
        self,
        complete: CompleteFn,
        baseline_model: str = BASELINE_MODEL,
        fallback_budget: int = FALLBACK_TOKEN_BUDGET,
    ):
        self.complete = complete
        self.baseline_model = baseline_model
        self.fallback_budget = fallback_budget

    def fallback(self, token_budget: int) -> ProbeResult:
        return ProbeResult(
            available=False,
            model=self.baseline_model,
            token_budget=min(token_budget, self.fallback_budget),
        )

    def probe(self, model: str, token_budget: int) -> ProbeResult:
        if model == self.baseline_model:
            return ProbeResult(available=True, model=model, token_budget=token_budget, probed=False)

        logger.info("Probing model %s", model)
        try:
            reply = self.complete(
                model=model,
                messages=[{"role": "user", "content": f"Reply with the single word {PROBE_WORD}."}],
                max_tokens=PROBE_TOKENS,
                temperature=0.1,
            )
        except Exception as e:  # the probe hands back a usable pair whatever happens
            reason = e.label if isinstance(e, BookGenError) else type(e).__name__
            logger.warning("Model %s not available (%s); falling back to %s",
                           model, reason, self.baseline_model)
            return self.fallback(token_budget)

        if PROBE_WORD not in reply.text.upper():
            logger.warning("Unexpected probe reply from %s: %r", model, reply.text[:40])
            return self.fallback(token_budget)

        logger.info("Model %s confirmed available", model)
        return ProbeResult(available=True, model=model, token_budget=token_budget)
