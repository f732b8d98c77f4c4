"""Integration tests for the streaming relay — GET /proxy?url=.

Covers byte-exact relaying, the response header allow-list, caller identity
forwarding, upstream status passthrough and transport failures.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, Callable, Optional

import httpx
import pytest
from starlette.testclient import TestClient

from scriptguard.config import Config, FetchConfig
from scriptguard.constants import CORS_ALLOW_METHODS, CORS_RELAY_ALLOW_METHODS
from scriptguard.main import create_app

# ─── Fixtures & Helpers ───────────────────────────────────────────────────────

PAYLOAD = os.urandom(256 * 1024)


class _MockUpstream:
    """Mock media server: records requests, serves ``body`` with ``headers``."""

    def __init__(
        self,
        *,
        status_code: int = 200,
        body: bytes = PAYLOAD,
        headers: Optional[dict[str, str]] = None,
        handler: Optional[Callable[[httpx.Request], Any]] = None,
    ) -> None:
        self.received_requests: list[httpx.Request] = []
        self._status_code = status_code
        self._body = body
        self._headers = headers if headers is not None else {"content-type": "video/mp4"}
        self._handler = handler

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.received_requests.append(request)
        if self._handler is not None:
            result = self._handler(request)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return httpx.Response(self._status_code, content=self._body, headers=self._headers)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handle),
            follow_redirects=True,
        )


def _build_test_app(
    mock_upstream: _MockUpstream,
    monkeypatch: pytest.MonkeyPatch,
    config: Optional[Config] = None,
) -> Any:
    config = config or Config.defaults()
    monkeypatch.setattr("scriptguard.main.load_config", lambda: config)
    monkeypatch.setattr("scriptguard.main.create_http_client", mock_upstream.client)
    return create_app()


def _relay(
    app: Any,
    url: Optional[str] = "https://media.test/video.mp4",
    headers: Optional[dict[str, str]] = None,
) -> httpx.Response:
    params = {"url": url} if url is not None else None
    with TestClient(app) as client:
        return client.get("/proxy", params=params, headers=headers)


# ─── Success path ─────────────────────────────────────────────────────────────


class TestRelayBody:
    def test_binary_body_relayed_byte_for_byte(self, monkeypatch: pytest.MonkeyPatch) -> None:
        upstream = _MockUpstream()
        response = _relay(_build_test_app(upstream, monkeypatch))

        assert response.status_code == 200
        assert response.content == PAYLOAD
        assert response.headers["content-length"] == str(len(PAYLOAD))
        assert response.headers["content-type"] == "video/mp4"

    def test_partial_content_status_passes_through(self, monkeypatch: pytest.MonkeyPatch) -> None:
        upstream = _MockUpstream(
            status_code=206,
            body=PAYLOAD[:1024],
            headers={"content-type": "video/mp4", "accept-ranges": "bytes"},
        )
        response = _relay(_build_test_app(upstream, monkeypatch))

        assert response.status_code == 206
        assert response.content == PAYLOAD[:1024]
        assert response.headers["accept-ranges"] == "bytes"

    def test_empty_body(self, monkeypatch: pytest.MonkeyPatch) -> None:
        upstream = _MockUpstream(body=b"", headers={"content-type": "text/plain"})
        response = _relay(_build_test_app(upstream, monkeypatch))

        assert response.status_code == 200
        assert response.content == b""


class TestRelayHeaders:
    def test_only_allow_listed_headers_forwarded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        upstream = _MockUpstream(
            headers={
                "content-type": "application/vnd.apple.mpegurl",
                "cache-control": "no-cache",
                "content-disposition": 'attachment; filename="list.m3u8"',
                "set-cookie": "session=secret; HttpOnly",
                "x-powered-by": "PHP/8",
                "server": "nginx",
            }
        )
        response = _relay(_build_test_app(upstream, monkeypatch))

        assert response.headers["content-type"] == "application/vnd.apple.mpegurl"
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["content-disposition"] == 'attachment; filename="list.m3u8"'
        assert "set-cookie" not in response.headers
        assert "x-powered-by" not in response.headers
        assert "server" not in response.headers

    def test_absent_headers_are_not_defaulted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        upstream = _MockUpstream(headers={"content-type": "image/png"})
        response = _relay(_build_test_app(upstream, monkeypatch))

        assert "cache-control" not in response.headers
        assert "content-disposition" not in response.headers
        assert "accept-ranges" not in response.headers

    def test_relay_scope_cors_headers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        response = _relay(_build_test_app(_MockUpstream(), monkeypatch))

        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-methods"] == CORS_RELAY_ALLOW_METHODS

    def test_caller_identity_forwarded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        upstream = _MockUpstream()
        _relay(
            _build_test_app(upstream, monkeypatch),
            headers={
                "User-Agent": "VLC/3.0.18",
                "Referer": "https://player.test/embed",
                "Cookie": "caller=1",
            },
        )

        request = upstream.received_requests[0]
        assert request.headers["user-agent"] == "VLC/3.0.18"
        assert request.headers["referer"] == "https://player.test/embed"
        assert request.headers["accept-encoding"] == "identity"
        assert "cookie" not in request.headers

    def test_no_referer_when_caller_sent_none(self, monkeypatch: pytest.MonkeyPatch) -> None:
        upstream = _MockUpstream()
        _relay(_build_test_app(upstream, monkeypatch))

        assert "referer" not in upstream.received_requests[0].headers

    def test_target_is_not_normalized(self, monkeypatch: pytest.MonkeyPatch) -> None:
        upstream = _MockUpstream()
        _relay(_build_test_app(upstream, monkeypatch), url="https://media.test/seg-1.ts?token=a%2Fb")

        assert str(upstream.received_requests[0].url) == "https://media.test/seg-1.ts?token=a%2Fb"


# ─── Failure mapping ──────────────────────────────────────────────────────────


class TestRelayFailures:
    def test_missing_url_is_400(self, monkeypatch: pytest.MonkeyPatch) -> None:
        upstream = _MockUpstream()
        response = _relay(_build_test_app(upstream, monkeypatch), url=None)

        assert response.status_code == 400
        assert response.json() == {"error": "Please provide a ?url= parameter."}
        assert upstream.received_requests == []

    @pytest.mark.parametrize(
        ("status", "reason"),
        [(403, "Forbidden"), (404, "Not Found"), (503, "Service Unavailable")],
    )
    def test_upstream_status_passes_through(
        self, status: int, reason: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        upstream = _MockUpstream(status_code=status, body=b"nope")
        response = _relay(_build_test_app(upstream, monkeypatch))

        assert response.status_code == status
        assert response.json() == {"error": reason}
        assert response.headers["access-control-allow-methods"] == CORS_ALLOW_METHODS

    def test_transport_failure_is_500_with_raw_message(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        upstream = _MockUpstream(handler=handler)
        response = _relay(_build_test_app(upstream, monkeypatch))

        assert response.status_code == 500
        assert response.json() == {"error": "Connection refused"}

    def test_slow_upstream_is_500_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(2)
            return httpx.Response(200, content=b"late")

        upstream = _MockUpstream(handler=handler)
        config = Config(fetch=FetchConfig(relay_timeout_s=0.1))
        response = _relay(_build_test_app(upstream, monkeypatch, config=config))

        assert response.status_code == 500
        assert response.json() == {"error": "timeout of 100ms exceeded"}
