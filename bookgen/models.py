# bookgen/models.py
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import List, Literal


class _Wire(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SizeProfile(_Wire):
    key: str
    label: str
    description: str
    chapters: int = Field(..., ge=1)
    min_words: int = Field(..., ge=1)
    max_words: int = Field(..., ge=1)
    token_budget: int = Field(..., gt=0)
    model: str
    pages: str
    reading_time: str

    @model_validator(mode="after")
    def _word_range(self):
        if self.min_words > self.max_words:
            raise ValueError(f"{self.key}: min_words {self.min_words} > max_words {self.max_words}")
        return self


class GenerationRequest(_Wire):
    description: str
    size: str
    genre: str = "fiction"
    audience: str = "adult"
    chapter_count: int | None = Field(None, ge=1, le=50)


class Chapter(_Wire):
    title: str
    content: str


class BookDocument(_Wire):
    title: str
    synopsis: str
    chapters: List[Chapter]


class Usage(_Wire):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class Completion(_Wire):
    text: str
    model: str
    usage: Usage = Usage()


# ─── response metadata ───────────────────────────────────────────────────
class GenerationInfo(_Wire):
    model: str
    tokens_used: int
    generation_time_ms: int
    timestamp: str


class BookInfo(_Wire):
    size: str
    estimated_pages: int
    estimated_reading_time: str
    total_chapters: int
    total_characters: int
    genre: str
    audience: str


class TechnicalInfo(_Wire):
    mode: Literal["single", "decomposed"]
    probed: bool
    model_available: bool
    token_budget: int
    originality_fallback: bool = False


class BookMetadata(_Wire):
    generation: GenerationInfo
    book_info: BookInfo
    technical: TechnicalInfo
    issues: List[str] = []


class BookRecord(_Wire):
    id: str
    premise: str
    request: GenerationRequest
    document: BookDocument
    owner_id: str
    created_at: str
    updated_at: str | None = None
    metadata: BookMetadata | None = None


class BookTemplate(_Wire):
    id: str
    title: str
    description: str
    genre: str
    audience: str
    recommended_size: Literal["small", "medium", "large", "epic"]
    prompt: str
    tags: List[str] = []
