"""Unit tests for header policy (scriptguard/proxy/headers.py)."""

from __future__ import annotations

import httpx

from scriptguard.constants import (
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_RELAY_ALLOW_METHODS,
    DOCUMENT_USER_AGENT,
    FORWARDED_RESPONSE_HEADERS,
)
from scriptguard.proxy.headers import (
    build_document_request_headers,
    build_relay_request_headers,
    build_relay_response_headers,
    cors_headers,
)


class TestCorsHeaders:
    def test_root_scope(self) -> None:
        assert cors_headers() == {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        }

    def test_relay_scope_narrows_methods(self) -> None:
        assert cors_headers(relay=True)["Access-Control-Allow-Methods"] == CORS_RELAY_ALLOW_METHODS
        assert CORS_RELAY_ALLOW_METHODS == "GET, OPTIONS"


def test_document_request_headers_carry_only_browser_identity() -> None:
    assert build_document_request_headers(DOCUMENT_USER_AGENT) == {
        "User-Agent": DOCUMENT_USER_AGENT
    }


class TestRelayRequestHeaders:
    def test_forwards_caller_user_agent_and_referer(self) -> None:
        caller = httpx.Headers({"User-Agent": "VLC/3.0", "Referer": "https://site.test/", "Cookie": "a=1"})
        headers = build_relay_request_headers(caller, "Mozilla/5.0")
        assert headers == {
            "User-Agent": "VLC/3.0",
            "Accept-Encoding": "identity",
            "Referer": "https://site.test/",
        }

    def test_defaults_user_agent_and_omits_missing_referer(self) -> None:
        headers = build_relay_request_headers(httpx.Headers(), "Mozilla/5.0")
        assert headers["User-Agent"] == "Mozilla/5.0"
        assert "Referer" not in headers


class TestRelayResponseHeaders:
    def test_copies_allow_listed_headers_only(self) -> None:
        upstream = httpx.Headers(
            {
                "Content-Type": "video/mp4",
                "Content-Length": "1024",
                "Accept-Ranges": "bytes",
                "Content-Disposition": "inline",
                "Cache-Control": "max-age=60",
                "Set-Cookie": "session=secret",
                "Content-Encoding": "gzip",
                "Server": "nginx",
            }
        )
        headers = build_relay_response_headers(upstream)
        assert set(headers) == set(FORWARDED_RESPONSE_HEADERS)
        assert headers["content-length"] == "1024"

    def test_absent_headers_stay_absent(self) -> None:
        headers = build_relay_response_headers(httpx.Headers({"Content-Type": "text/plain"}))
        assert headers == {"content-type": "text/plain"}
