# tests/test_openai_wrapper.py
from types import SimpleNamespace

import httpx
import openai
import pytest

from bookgen.config import Settings
from bookgen.errors import (
    AuthError, ConfigError, MalformedResponse, ModelUnavailable, QuotaExceeded, RateLimited,
    TransportError,
)
from bookgen.llm import openai_wrapper
from bookgen.llm.openai_wrapper import safe_tokens, translate_error

REQ = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status(cls, status, code=None):
    body = {"code": code} if code else None
    return cls("boom", response=httpx.Response(status, request=REQ), body=body)


def test_safe_tokens():
    assert safe_tokens(6000, 16385, 1000) == 6000
    assert safe_tokens(6000, 4096, 1000) == 3096
    assert safe_tokens(6000, 4096, 4090) == 100


def test_safe_tokens_respects_completion_cap():
    assert safe_tokens(6000, 16385, 600, cap=4096) == 4096
    assert safe_tokens(3000, 16385, 600, cap=4096) == 3000
    assert safe_tokens(6000, 4096, 1000, cap=4096) == 3096


@pytest.mark.parametrize("exc, expected", [
    (_status(openai.AuthenticationError, 401), AuthError),
    (_status(openai.RateLimitError, 429, "insufficient_quota"), QuotaExceeded),
    (_status(openai.RateLimitError, 429), RateLimited),
    (_status(openai.NotFoundError, 404, "model_not_found"), ModelUnavailable),
    (_status(openai.PermissionDeniedError, 403), ModelUnavailable),
    (_status(openai.BadRequestError, 400, "model_not_found"), ModelUnavailable),
    (_status(openai.BadRequestError, 400, "context_length_exceeded"), ConfigError),
    (openai.BadRequestError("max_tokens is too large: 6000. This model supports at most 4096 "
                            "completion tokens", response=httpx.Response(400, request=REQ), body=None),
     ConfigError),
    (_status(openai.BadRequestError, 400), TransportError),
    (_status(openai.InternalServerError, 500), TransportError),
    (openai.APIConnectionError(request=REQ), TransportError),
])
def test_translate_error(exc, expected):
    assert type(translate_error(exc)) is expected


def test_missing_key_is_auth_error():
    with pytest.raises(AuthError):
        openai_wrapper.get_client(None)


class _Client:
    def __init__(self, content, exc=None):
        self.kwargs = None
        self.content, self.exc = content, exc
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self.create))

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.exc:
            raise self.exc
        return SimpleNamespace(
            model=kwargs["model"],
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(prompt_tokens=50, completion_tokens=20, total_tokens=70),
        )


@pytest.fixture
def fake_client(monkeypatch):
    def install(content, exc=None):
        client = _Client(content, exc)
        monkeypatch.setattr(openai_wrapper, "get_client", lambda key, timeout: client)
        monkeypatch.setattr(openai_wrapper, "tk_len", lambda model, messages: 1000)
        return client
    return install


def test_complete_returns_text_and_usage(fake_client, tmp_path):
    client = fake_client("hello")
    ledger = tmp_path / "cost.csv"
    settings = Settings(openai_api_key="sk-test", cost_log=ledger,
                        model_ceilings={"gpt-3.5-turbo": 4096})
    out = openai_wrapper.complete(model="gpt-3.5-turbo", messages=[{"role": "user", "content": "hi"}],
                                  max_tokens=6000, settings=settings)
    assert out.text == "hello"
    assert out.usage.total_tokens == 70
    assert client.kwargs["max_tokens"] == 3096
    assert ledger.read_text().splitlines()[1].startswith(tuple("0123456789"))


def test_complete_never_asks_past_the_completion_cap(fake_client):
    client = fake_client("hello")
    openai_wrapper.complete(model="gpt-3.5-turbo", messages=[{"role": "user", "content": "hi"}],
                            max_tokens=6000, settings=Settings(openai_api_key="sk-test"))
    assert client.kwargs["max_tokens"] == 4096


def test_complete_empty_content_is_malformed(fake_client):
    fake_client("")
    with pytest.raises(MalformedResponse):
        openai_wrapper.complete(model="gpt-3.5-turbo", messages=[], max_tokens=10,
                                settings=Settings(openai_api_key="sk-test"))


def test_complete_translates_openai_errors(fake_client):
    fake_client(None, exc=_status(openai.RateLimitError, 429))
    with pytest.raises(RateLimited):
        openai_wrapper.complete(model="gpt-3.5-turbo", messages=[], max_tokens=10,
                                settings=Settings(openai_api_key="sk-test"))
