from __future__ import annotations

import pytest

from src.core import net


def test_allowed_outbound_hosts_default_is_text_generation_api(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ALLOWED_OUTBOUND_HOSTS", raising=False)
    assert net.allowed_outbound_hosts() == {"api.openai.com"}


def test_allowed_outbound_hosts_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALLOWED_OUTBOUND_HOSTS", " API.Example.com , llm.internal ")
    assert net.allowed_outbound_hosts() == {"api.example.com", "llm.internal"}


def test_assert_url_allowed_rejects_http_and_unknown_hosts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ALLOWED_OUTBOUND_HOSTS", raising=False)
    net.assert_url_allowed("https://api.openai.com/v1/chat/completions")
    with pytest.raises(net.NetworkError, match="only https"):
        net.assert_url_allowed("http://api.openai.com/v1/chat/completions")
    with pytest.raises(net.NetworkError, match="not allowlisted"):
        net.assert_url_allowed("https://evil.example.com/")


def test_post_is_blocked_when_network_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NETWORK_ENABLED", raising=False)
    with pytest.raises(net.NetworkError, match="Network disabled"):
        net.http_post_json("https://api.openai.com/v1/chat/completions", {"x": 1})
