"""
openai-python ≥1.0 wrapper

• complete() runs one chat completion and returns a Completion.
• max_tokens is clamped to the model's completion cap and to its
  context window minus the prompt.
• openai exceptions are translated into bookgen.errors.
"""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Protocol

import openai
import tiktoken
from openai import OpenAI

from bookgen.config import Settings
from bookgen.errors import (
    AuthError, BookGenError, ConfigError, MalformedResponse, ModelUnavailable,
    QuotaExceeded, RateLimited, TransportError,
)
from bookgen.models import Completion, Usage

logger = logging.getLogger(__name__)

# ─── token price table (USD / 1K tokens, prompt + completion) ────────────
_COST = {
    "gpt-3.5-turbo": 0.0015,
    "gpt-3.5-turbo-16k": 0.003,
    "gpt-4o-mini": 0.0005,
    "gpt-4o": 0.005,
    "gpt-4-turbo": 0.003,
}
MIN_COMPLETION_TOKENS = 100


class CompleteFn(Protocol):
    def __call__(self, *, model: str, messages: List[Dict[str, str]],
                 max_tokens: int, temperature: float) -> Completion: ...


# ─── client instance (lazy, one per key/timeout) ─────────────────────────
@lru_cache(maxsize=4)
def get_client(api_key: str | None = None, timeout: float = 600.0) -> OpenAI:
    if not api_key:
        raise AuthError("OPENAI_API_KEY is not set")
    return OpenAI(api_key=api_key, timeout=timeout)


def _log_cost(model: str, p: int, c: int, ledger: Path | None) -> float:
    cost = (p + c) / 1000 * _COST.get(model, 0.0)
    if ledger:
        if not ledger.exists():
            ledger.parent.mkdir(parents=True, exist_ok=True)
            ledger.write_text("ts,model,prompt_tokens,completion_tokens,cost\n", encoding="utf-8")
        with ledger.open("a", encoding="utf-8") as f:
            f.write(f"{int(time.time())},{model},{p},{c},{cost:.6f}\n")
    logger.info("[LLM] %s  p=%d  c=%d  →  $%.4f", model, p, c, cost)
    return cost


# ─── token arithmetic ────────────────────────────────────────────────────
_enc_cache: Dict[str, tiktoken.Encoding] = {}


def tk_len(model: str, messages: List[Dict[str, str]]) -> int:
    enc = _enc_cache.get(model)
    if enc is None:
        try:
            enc = tiktoken.encoding_for_model(model)
        except KeyError:
            enc = tiktoken.get_encoding("cl100k_base")
        _enc_cache[model] = enc
    # ~4 tokens of framing per message
    return sum(len(enc.encode(m["content"])) + 4 for m in messages)


def safe_tokens(requested: int, ceiling: int, used_prompt_tokens: int, cap: int | None = None) -> int:
    """Clamp *requested* to the completion *cap* and to what *ceiling* leaves after the prompt."""
    limit = ceiling - used_prompt_tokens
    if cap is not None:
        limit = min(limit, cap)
    return max(MIN_COMPLETION_TOKENS, min(requested, limit))


# ─── error translation ───────────────────────────────────────────────────
def translate_error(e: Exception) -> BookGenError:
    code = getattr(e, "code", None)
    if isinstance(e, openai.AuthenticationError) or code == "invalid_api_key":
        return AuthError(str(e))
    if code == "insufficient_quota":
        return QuotaExceeded(str(e))
    if isinstance(e, openai.RateLimitError):
        return RateLimited(str(e))
    if isinstance(e, (openai.NotFoundError, openai.PermissionDeniedError)) or code == "model_not_found":
        return ModelUnavailable(str(e))
    if isinstance(e, openai.BadRequestError) and (
        code == "context_length_exceeded" or getattr(e, "param", None) == "max_tokens"
        or "max_tokens" in str(e)
    ):
        return ConfigError(f"Token limits rejected by the API: {e}")
    return TransportError(f"{type(e).__name__}: {e}")


def complete(
    *,
    model: str,
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: float = 0.75,
    settings: Settings | None = None,
) -> Completion:
    """
    Execute a chat completion and return its text and usage.

    Raises one of AuthError, QuotaExceeded, RateLimited, ModelUnavailable,
    ConfigError (token limits rejected), TransportError or MalformedResponse
    (empty content).
    """
    settings = settings or Settings.from_env()
    client = get_client(settings.openai_api_key, settings.request_timeout)

    prompt_tok = tk_len(model, messages)
    max_tok = safe_tokens(max_tokens, settings.ceiling_for(model), prompt_tok,
                          settings.completion_cap_for(model))
    logger.debug("prompt=%d  max_tokens=%d  model=%s", prompt_tok, max_tok, model)

    try:
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tok,
        )
    except openai.OpenAIError as e:
        raise translate_error(e) from e

    text = response.choices[0].message.content if response.choices else None
    if not text:
        raise MalformedResponse(f"{model} returned an empty response")

    usage = Usage()
    if response.usage:
        usage = Usage(
            prompt_tokens=response.usage.prompt_tokens,
            completion_tokens=response.usage.completion_tokens,
            total_tokens=response.usage.total_tokens,
        )
        _log_cost(model, usage.prompt_tokens, usage.completion_tokens, settings.cost_log)

    return Completion(text=text, model=response.model or model, usage=usage)
