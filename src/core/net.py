from __future__ import annotations

import json
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Mapping, Optional

_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})
DEFAULT_ALLOWED_HOSTS = frozenset({"api.openai.com"})


class NetworkError(Exception):
    pass


def network_enabled() -> bool:
    return (os.environ.get("NETWORK_ENABLED") or "").strip().lower() in _TRUTHY


def allowed_outbound_hosts() -> set[str]:
    """Hosts from ALLOWED_OUTBOUND_HOSTS (comma separated), else only the text-generation API."""
    configured = {part.strip().lower() for part in (os.environ.get("ALLOWED_OUTBOUND_HOSTS") or "").split(",")}
    configured.discard("")
    return configured or set(DEFAULT_ALLOWED_HOSTS)


def _host_of(url: str) -> str:
    return (urllib.parse.urlparse(url).hostname or "").lower()


def assert_url_allowed(url: str) -> None:
    if urllib.parse.urlparse(url).scheme.lower() != "https":
        raise NetworkError("Blocked network request: only https:// is allowed.")
    host = _host_of(url)
    if not host:
        raise NetworkError("Blocked network request: missing hostname.")
    if host not in allowed_outbound_hosts():
        raise NetworkError(f"Blocked network request: host not allowlisted ({host}).")


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    content: bytes
    content_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.content.decode("utf-8"))


class _CheckedRedirects(urllib.request.HTTPRedirectHandler):
    """Re-applies the allowlist to every redirect target."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):  # type: ignore[override]
        assert_url_allowed(str(newurl))
        return super().redirect_request(req, fp, code, msg, headers, newurl)


def http_post_json(
    url: str,
    payload: Mapping[str, Any],
    *,
    headers: Optional[Mapping[str, str]] = None,
    timeout_s: float = 8.0,
) -> HttpResponse:
    """
    One HTTPS POST with a JSON body, gated by NETWORK_ENABLED and the host allowlist.

    No retries. Raised errors name the host only; headers (API keys) are never echoed.
    """
    if not network_enabled():
        raise NetworkError("Network disabled; set NETWORK_ENABLED=1 to enable outbound calls.")
    assert_url_allowed(url)

    req = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", **dict(headers or {})},
        method="POST",
    )
    host = _host_of(url)
    try:
        with urllib.request.build_opener(_CheckedRedirects()).open(req, timeout=timeout_s) as resp:
            return HttpResponse(
                status_code=int(getattr(resp, "status", 200)),
                content=resp.read(),
                content_type=resp.headers.get("Content-Type"),
            )
    except urllib.error.HTTPError as e:
        raise NetworkError(f"HTTP error status={e.code} host={host}") from e
    except urllib.error.URLError as e:
        raise NetworkError(f"Network request failed: {e.reason} host={host}") from e
    except TimeoutError as e:
        raise NetworkError(f"Network request timed out after {timeout_s:.1f}s host={host}") from e
