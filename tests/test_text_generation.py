from __future__ import annotations

import json

import pytest

from src.core import text_generation
from src.core.net import HttpResponse, NetworkError
from src.core.text_generation import OpenAIChatClient, TextGenerationError, default_generator
from src.leakfinder.config import TextGenerationConfig


def _chat_response(content: str, status: int = 200) -> HttpResponse:
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    return HttpResponse(status_code=status, content=json.dumps(body).encode("utf-8"), content_type="application/json")


def test_generate_json_parses_message_content(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_post(url, payload, *, headers=None, timeout_s=8.0):
        seen.update(url=url, payload=payload, headers=headers, timeout_s=timeout_s)
        return _chat_response('{"steps": ["a", "b", "c", "d"]}')

    monkeypatch.setattr(text_generation, "http_post_json", fake_post)
    client = OpenAIChatClient(TextGenerationConfig(timeout_s=3.0), api_key="sk-test")
    out = client.generate_json(system="sys", prompt="hello")

    assert out == {"steps": ["a", "b", "c", "d"]}
    assert seen["payload"]["model"] == "gpt-4o-mini"
    assert seen["payload"]["response_format"] == {"type": "json_object"}
    assert seen["payload"]["messages"][1] == {"role": "user", "content": "hello"}
    assert seen["headers"]["Authorization"] == "Bearer sk-test"
    assert seen["timeout_s"] == 3.0


@pytest.mark.parametrize(
    "response",
    [
        _chat_response("not json"),
        _chat_response('["a list"]'),
        _chat_response("{}", status=500),
        HttpResponse(status_code=200, content=b'{"choices": []}'),
    ],
)
def test_malformed_or_failed_responses_raise(monkeypatch: pytest.MonkeyPatch, response) -> None:
    monkeypatch.setattr(text_generation, "http_post_json", lambda *a, **k: response)
    with pytest.raises(TextGenerationError):
        OpenAIChatClient(api_key="sk-test").generate_json(system="s", prompt="p")


def test_network_errors_become_text_generation_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(*a, **k):
        raise NetworkError("timed out")

    monkeypatch.setattr(text_generation, "http_post_json", boom)
    with pytest.raises(TextGenerationError, match="timed out"):
        OpenAIChatClient(api_key="sk-test").generate_json(system="s", prompt="p")


def test_missing_key_or_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(TextGenerationError, match="Missing API key"):
        OpenAIChatClient().generate_json(system="s", prompt="p")
    with pytest.raises(TextGenerationError, match="disabled"):
        OpenAIChatClient(TextGenerationConfig(enabled=False), api_key="sk-test").generate_json(system="s", prompt="p")

    assert default_generator() is None
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    assert isinstance(default_generator(), OpenAIChatClient)
    assert default_generator(TextGenerationConfig(enabled=False)) is None
