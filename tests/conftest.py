# tests/conftest.py
import json
import re

import pytest

from bookgen.config import Settings
from bookgen.engine.pipeline import BookPipeline
from bookgen.models import Completion, Usage

LIGHTHOUSE = (
    "A lighthouse keeper discovers that the light she tends is the only thing "
    "keeping an ancient sea creature asleep beneath the bay."
)
USAGE = Usage(prompt_tokens=100, completion_tokens=400, total_tokens=500)


def prose(n: int) -> str:
    """About 120 words of original chapter prose."""
    return (
        f"Night {n} came in off the water like a held breath. Maren counted the steps of the "
        "spiral stair out loud, one hundred and twelve, the way her grandmother had taught her, "
        "and at the top she wiped the salt from the great lens with a rag that smelled of oil.\n\n"
        "Below, the bay was too still. The gulls had gone quiet an hour before sunset and the "
        "fishing boats had stayed in, their crews muttering about a warmth rising from the deep. "
        "She trimmed the wick, checked the clockwork and waited for the beam to sweep the rocks.\n\n"
        '"Not tonight," she whispered to the dark, and far out past the reef something vast '
        "turned over in its sleep and settled again."
    )


def book_json(n: int, title: str = "The Keeper of Stormy Point") -> str:
    return json.dumps({
        "title": title,
        "synopsis": "Maren inherits a lighthouse and the secret of what its beam holds down "
                    "in the cold water of the bay.",
        "chapters": [{"title": f"Watch {i}", "content": prose(i)} for i in range(1, n + 1)],
    })


class FakeLLM:
    """Stands in for openai_wrapper.complete; answers by prompt type."""

    def __init__(self, fail=None):
        self.calls = []
        self.fail = fail or (lambda model, prompt: None)

    def __call__(self, *, model, messages, max_tokens, temperature):
        prompt = messages[-1]["content"]
        self.calls.append({"model": model, "prompt": prompt, "max_tokens": max_tokens})
        exc = self.fail(model, prompt)
        if exc is not None:
            raise exc
        return Completion(text=self.reply(model, prompt), model=model, usage=USAGE)

    def reply(self, model, prompt):
        if prompt.startswith("Reply with the single word"):
            return "AVAILABLE"
        if prompt.startswith("Plan a"):
            return json.dumps({
                "title": "The Keeper of Stormy Point",
                "synopsis": "Maren inherits a lighthouse and the secret of what its beam holds "
                            "down in the cold water of the bay.",
            })
        m = re.match(r"Write chapter (\d+) of (\d+)", prompt)
        if m:
            i = int(m.group(1))
            return json.dumps({"title": f"Watch {i}", "content": prose(i)})
        m = re.search(r"exactly (\d+) complete chapters", prompt)
        return book_json(int(m.group(1)))

    @property
    def models(self):
        return [c["model"] for c in self.calls]


@pytest.fixture
def settings(tmp_path):
    return Settings(chapter_delay=0.0, data_dir=tmp_path / "data", log_dir=tmp_path / "logs")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def pipeline(llm, settings, sleeps):
    return BookPipeline(llm, settings, sleep=sleeps.append)
