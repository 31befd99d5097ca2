# tests/test_prober.py
from bookgen.errors import ModelUnavailable
from bookgen.llm.prober import ModelProber
from bookgen.models import Completion

from conftest import FakeLLM


def test_baseline_model_is_not_probed():
    llm = FakeLLM()
    r = ModelProber(llm).probe("gpt-3.5-turbo", 6000)
    assert (r.available, r.model, r.token_budget, r.probed) == (True, "gpt-3.5-turbo", 6000, False)
    assert llm.calls == []


def test_available_model_keeps_budget():
    llm = FakeLLM()
    r = ModelProber(llm).probe("gpt-3.5-turbo-16k", 12000)
    assert (r.available, r.model, r.token_budget, r.probed) == (True, "gpt-3.5-turbo-16k", 12000, True)
    assert llm.calls[0]["max_tokens"] == 10


def test_unavailable_model_falls_back():
    llm = FakeLLM(fail=lambda model, prompt: ModelUnavailable("no access"))
    r = ModelProber(llm).probe("gpt-4", 12000)
    assert (r.available, r.model, r.token_budget) == (False, "gpt-3.5-turbo", 3500)


def test_fallback_never_raises_budget():
    llm = FakeLLM(fail=lambda model, prompt: RuntimeError("socket closed"))
    r = ModelProber(llm).probe("gpt-4", 2000)
    assert (r.model, r.token_budget) == ("gpt-3.5-turbo", 2000)


def test_unexpected_reply_falls_back():
    def complete(**kw):
        return Completion(text="I cannot help with that.", model=kw["model"])
    r = ModelProber(complete).probe("gpt-4", 12000)
    assert not r.available and r.model == "gpt-3.5-turbo"
