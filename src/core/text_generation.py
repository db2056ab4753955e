from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional, Protocol

from src.core.net import NetworkError, http_post_json
from src.leakfinder.config import TextGenerationConfig


log = logging.getLogger(__name__)


class TextGenerationError(Exception):
    pass


class TextGenerator(Protocol):
    def generate_json(self, *, system: str, prompt: str, max_tokens: Optional[int] = None) -> dict[str, Any]: ...


class OpenAIChatClient:
    """
    Chat-completions client that always asks for a JSON object back.

    Any failure (disabled, missing key, network, non-2xx, malformed body) raises
    TextGenerationError; callers own the fallback.
    """

    def __init__(self, cfg: TextGenerationConfig | None = None, *, api_key: Optional[str] = None) -> None:
        self.cfg = cfg or TextGenerationConfig()
        self._api_key = api_key

    @property
    def api_key(self) -> Optional[str]:
        if self._api_key is not None:
            return self._api_key.strip() or None
        return (os.environ.get(self.cfg.api_key_env) or "").strip() or None

    @property
    def available(self) -> bool:
        return bool(self.cfg.enabled and self.api_key)

    def generate_json(self, *, system: str, prompt: str, max_tokens: Optional[int] = None) -> dict[str, Any]:
        if not self.cfg.enabled:
            raise TextGenerationError("Text generation disabled by configuration.")
        key = self.api_key
        if not key:
            raise TextGenerationError(f"Missing API key ({self.cfg.api_key_env}).")
        payload = {
            "model": self.cfg.model,
            "temperature": self.cfg.temperature,
            "max_tokens": int(max_tokens or self.cfg.max_tokens),
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }
        try:
            resp = http_post_json(
                self.cfg.base_url,
                payload,
                headers={"Authorization": f"Bearer {key}"},
                timeout_s=self.cfg.timeout_s,
            )
        except NetworkError as e:
            raise TextGenerationError(str(e)) from e
        if not resp.ok:
            raise TextGenerationError(f"Unexpected status {resp.status_code}")
        try:
            body = resp.json()
            content = body["choices"][0]["message"]["content"]
            parsed = json.loads(content or "")
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TextGenerationError(f"Malformed response: {type(e).__name__}") from e
        if not isinstance(parsed, dict):
            raise TextGenerationError("Malformed response: expected a JSON object")
        log.debug("Text generation ok (model=%s)", self.cfg.model)
        return parsed


def default_generator(cfg: TextGenerationConfig | None = None) -> Optional[TextGenerator]:
    """The configured client when it has a key; None sends every caller straight to its fallback."""
    client = OpenAIChatClient(cfg)
    if not client.available:
        log.info("Text generation unavailable (disabled or %s unset); using fallbacks", client.cfg.api_key_env)
        return None
    return client
