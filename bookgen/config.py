"""
config.py – size profiles, model token ceilings and runtime settings

• SIZE_PROFILES is read-only; look entries up with get_profile().
• Context windows and completion caps per model are kept separate and
  are overridable through BOOKGEN_MODEL_CEILINGS / BOOKGEN_COMPLETION_CAPS
  (JSON objects).  validate_profiles() refuses to start when a budget
  exceeds either limit of its model.
• Settings come from the environment (.env honoured) and may be
  overlaid by a JSON file, the way the wizard's --config works.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping

from dotenv import load_dotenv
from pydantic import BaseModel

from bookgen.errors import ConfigError, ValidationError
from bookgen.models import SizeProfile

# --------------------------------------------------------------------------
BASELINE_MODEL = "gpt-3.5-turbo"
FALLBACK_TOKEN_BUDGET = 3500
TOKENS_PER_WORD = 1.3

# context window (prompt + completion)
MODEL_TOKEN_CEILINGS: Mapping[str, int] = MappingProxyType({
    "gpt-3.5-turbo":        16_385,
    "gpt-3.5-turbo-16k":    16_385,
    "gpt-4":                 8_192,
    "gpt-4-turbo":         128_000,
    "gpt-4o":              128_000,
    "gpt-4o-mini":         128_000,
    "gpt-4.1":           1_047_576,
    "gpt-4.1-mini":      1_047_576,
})

# largest max_tokens a single completion may ask for
MODEL_COMPLETION_CAPS: Mapping[str, int] = MappingProxyType({
    "gpt-3.5-turbo":      4096,
    "gpt-3.5-turbo-16k":  4096,
    "gpt-4":              8192,
    "gpt-4-turbo":        4096,
    "gpt-4o":            16_384,
    "gpt-4o-mini":       16_384,
    "gpt-4.1":           32_768,
    "gpt-4.1-mini":      32_768,
})
DEFAULT_COMPLETION_CAP = 4096

SIZE_PROFILES: Mapping[str, SizeProfile] = MappingProxyType({
    p.key: p for p in (
        SizeProfile(
            key="small", label="Small",
            description="Short novella or story collection",
            chapters=4, min_words=800, max_words=1200,
            token_budget=4000, model="gpt-3.5-turbo",
            pages="40-60 pages", reading_time="1-2 hours",
        ),
        SizeProfile(
            key="medium", label="Medium",
            description="Standard-length novel",
            chapters=8, min_words=1500, max_words=2500,
            token_budget=12000, model="gpt-4o-mini",
            pages="80-120 pages", reading_time="3-4 hours",
        ),
        SizeProfile(
            key="large", label="Large",
            description="Long novel with interwoven plots",
            chapters=12, min_words=2000, max_words=3500,
            token_budget=14000, model="gpt-4o-mini",
            pages="150-200 pages", reading_time="5-7 hours",
        ),
        SizeProfile(
            key="epic", label="Epic",
            description="Full saga with several arcs",
            chapters=16, min_words=2500, max_words=4000,
            token_budget=16000, model="gpt-4o-mini",
            pages="200-300 pages", reading_time="8-10 hours",
        ),
    )
})

# identifiers used by the first version of the web app
SIZE_ALIASES: Mapping[str, str] = MappingProxyType({
    "pequeno": "small", "medio": "medium", "médio": "medium",
    "grande": "large", "epico": "epic", "épico": "epic",
})


def get_profile(size: str | None) -> SizeProfile:
    key = (size or "").strip().lower()
    key = SIZE_ALIASES.get(key, key)
    try:
        return SIZE_PROFILES[key]
    except KeyError:
        raise ValidationError(
            f"Unknown size {size!r}",
            issues=[f"Invalid size {size!r}; valid sizes: {', '.join(SIZE_PROFILES)}"],
        ) from None


def validate_profiles(
    profiles: Mapping[str, SizeProfile] | None = None,
    ceilings: Mapping[str, int] | None = None,
    fallback: tuple[str, int] | None = None,
    completion_caps: Mapping[str, int] | None = None,
) -> None:
    """Fail fast when a token budget is above its model's context or completion limit."""
    profiles = SIZE_PROFILES if profiles is None else profiles
    ceilings = MODEL_TOKEN_CEILINGS if ceilings is None else ceilings
    caps = MODEL_COMPLETION_CAPS if completion_caps is None else completion_caps
    pairs = [(f"size {p.key!r}", p.model, p.token_budget) for p in profiles.values()]
    if fallback:
        pairs.append(("fallback", *fallback))

    problems = []
    for name, model, budget in pairs:
        ctx = ceilings.get(model)
        comp = caps.get(model, DEFAULT_COMPLETION_CAP)
        if ctx is None:
            problems.append(f"{name}: no token ceiling configured for model {model!r}")
        elif budget > ctx:
            problems.append(f"{name}: budget {budget} exceeds {model} ceiling {ctx}")
        elif budget > comp:
            problems.append(f"{name}: budget {budget} exceeds {model} completion cap {comp}")
    if problems:
        raise ConfigError("; ".join(problems), issues=problems)


# ─── runtime settings ─────────────────────────────────────────────────────
class Settings(BaseModel):
    openai_api_key: str | None = None
    baseline_model: str = BASELINE_MODEL
    fallback_budget: int = FALLBACK_TOKEN_BUDGET
    model_ceilings: Dict[str, int] = dict(MODEL_TOKEN_CEILINGS)
    completion_caps: Dict[str, int] = dict(MODEL_COMPLETION_CAPS)
    chapter_delay: float = 1.0
    max_retries: int = 3
    backoff_base: float = 2.0
    temperature: float = 0.75
    request_timeout: float = 600.0
    data_dir: Path = Path("data")
    env: str = "production"
    log_level: str = "INFO"
    log_dir: Path = Path("outputs") / "logs"
    cost_log: Path | None = None

    @property
    def development(self) -> bool:
        return self.env.lower() in {"dev", "development"}

    def ceiling_for(self, model: str) -> int:
        return self.model_ceilings.get(model, self.model_ceilings.get(self.baseline_model, 4096))

    def completion_cap_for(self, model: str) -> int:
        return self.completion_caps.get(model, DEFAULT_COMPLETION_CAP)

    def validate_profiles(self) -> None:
        validate_profiles(
            ceilings=self.model_ceilings,
            fallback=(self.baseline_model, self.fallback_budget),
            completion_caps=self.completion_caps,
        )

    @classmethod
    def from_env(cls, config: Path | None = None) -> "Settings":
        load_dotenv()
        env = os.environ
        data: Dict[str, Any] = {}

        def put(key: str, var: str):
            if env.get(var):
                data[key] = env[var]

        put("openai_api_key", "OPENAI_API_KEY")
        put("baseline_model", "BOOKGEN_BASELINE_MODEL")
        put("fallback_budget", "BOOKGEN_FALLBACK_BUDGET")
        put("chapter_delay", "BOOKGEN_CHAPTER_DELAY")
        put("max_retries", "BOOKGEN_MAX_RETRIES")
        put("temperature", "BOOKGEN_TEMPERATURE")
        put("request_timeout", "BOOKGEN_REQUEST_TIMEOUT")
        put("data_dir", "BOOKGEN_DATA_DIR")
        put("env", "BOOKGEN_ENV")
        put("log_level", "BOOKGEN_LOG_LEVEL")
        put("log_dir", "BOOKGEN_LOG_DIR")
        put("cost_log", "BOOKGEN_COST_LOG")

        tables = {
            "model_ceilings": (dict(MODEL_TOKEN_CEILINGS), "BOOKGEN_MODEL_CEILINGS"),
            "completion_caps": (dict(MODEL_COMPLETION_CAPS), "BOOKGEN_COMPLETION_CAPS"),
        }
        for table, var in tables.values():
            if env.get(var):
                try:
                    table.update(json.loads(env[var]))
                except json.JSONDecodeError as e:
                    raise ConfigError(f"{var} is not valid JSON: {e}") from e

        if config:
            file_cfg = json.loads(Path(config).read_text(encoding="utf-8"))
            for key, (table, _) in tables.items():
                table.update(file_cfg.pop(key, {}))
            data.update(file_cfg)

        for key, (table, _) in tables.items():
            data[key] = table
        return cls.model_validate(data)
