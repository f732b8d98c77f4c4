"""HTTP header policy for ScriptGuard.

  - cors_headers(): the permissive cross-origin headers present on every
    response (root scope) or on successful relays (relay scope).

  - build_document_request_headers(): fixed browser identity for the rewrite
    pipeline. Nothing from the caller is forwarded.

  - build_relay_request_headers(): the caller's User-Agent (or a default), the
    caller's Referer only if one was sent, and an identity Accept-Encoding so
    relayed bytes and Content-Length stay exactly the upstream's.

  - build_relay_response_headers(): copies the FORWARDED_RESPONSE_HEADERS
    allow-list from the upstream response. Absent headers stay absent; nothing
    outside the list (set-cookie, content-encoding, ...) is ever forwarded.
"""

from __future__ import annotations

from typing import Mapping

import httpx

from scriptguard.constants import (
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_ALLOW_ORIGIN,
    CORS_RELAY_ALLOW_METHODS,
    FORWARDED_RESPONSE_HEADERS,
)


def cors_headers(relay: bool = False) -> dict[str, str]:
    """Return the CORS header set; ``relay=True`` narrows methods to GET/OPTIONS."""
    return {
        "Access-Control-Allow-Origin": CORS_ALLOW_ORIGIN,
        "Access-Control-Allow-Methods": CORS_RELAY_ALLOW_METHODS if relay else CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }


def build_document_request_headers(user_agent: str) -> dict[str, str]:
    return {"User-Agent": user_agent}


def build_relay_request_headers(
    caller_headers: Mapping[str, str],
    default_user_agent: str,
) -> dict[str, str]:
    """Build upstream headers for a relay request.

    Args:
        caller_headers:     incoming request headers (case-insensitive mapping,
                            typically ``request.headers``).
        default_user_agent: used when the caller sent no User-Agent.
    """
    headers: dict[str, str] = {
        "User-Agent": caller_headers.get("user-agent") or default_user_agent,
        "Accept-Encoding": "identity",
    }
    referer = caller_headers.get("referer")
    if referer:
        headers["Referer"] = referer
    return headers


def build_relay_response_headers(upstream_headers: httpx.Headers) -> dict[str, str]:
    """Copy allow-listed upstream response headers, and only those."""
    headers: dict[str, str] = {}
    for name in FORWARDED_RESPONSE_HEADERS:
        value = upstream_headers.get(name)
        if value is not None:
            headers[name] = value
    return headers
