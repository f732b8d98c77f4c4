"""Error taxonomy and error responses for ScriptGuard.

Every failure a handler can surface is a ``ProxyError`` subclass that knows its
HTTP status and renders a structured JSON body — never a stack trace:

  InvalidTarget        400  missing or malformed ?url=            (never retried)
  UpstreamNotFound     404  upstream host could not be resolved
  UpstreamTimeout      408  upstream exceeded its time bound
  UpstreamError        500  any other transport / upstream failure, cause text kept
  UpstreamStatusError  ---  relay only: mirrors the upstream's own status + reason

All errors are terminal for their request. No component retries.

``classify_transport_error()`` is the single place where httpx / asyncio
exceptions are mapped onto the taxonomy.
"""

from __future__ import annotations

import asyncio
import socket
from typing import Any, Optional

import httpx
from fastapi.responses import JSONResponse

# Resolver messages seen across platforms when a host does not resolve
# (glibc, musl, macOS, Windows). Used when the gaierror is not in the cause chain.
_DNS_FAILURE_MARKERS: tuple[str, ...] = (
    "name or service not known",
    "nodename nor servname provided",
    "temporary failure in name resolution",
    "no address associated with hostname",
    "getaddrinfo failed",
    "name does not resolve",
)


class ProxyError(Exception):
    """Base class for every user-facing ScriptGuard failure."""

    status_code: int = 500

    def __init__(self, message: str, *, cause: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def body(self) -> dict[str, Any]:
        return {"error": self.message}

    def to_response(self, headers: Optional[dict[str, str]] = None) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.body(), headers=headers)


class InvalidTarget(ProxyError):
    """The caller's ?url= is missing, or (rewrite path) not an absolute URL."""

    status_code = 400

    def __init__(self, message: str, *, example: Optional[str] = None) -> None:
        super().__init__(message)
        self.example = example

    def body(self) -> dict[str, Any]:
        body = super().body()
        if self.example is not None:
            body["example"] = self.example
        return body


class UpstreamNotFound(ProxyError):
    status_code = 404

    def __init__(self, cause: Optional[str] = None) -> None:
        super().__init__("URL not found or invalid", cause=cause)


class UpstreamTimeout(ProxyError):
    status_code = 408

    def __init__(self, cause: Optional[str] = None) -> None:
        super().__init__("Request timeout", cause=cause)


class UpstreamError(ProxyError):
    """Catch-all upstream failure. ``message`` carries the underlying cause."""

    status_code = 500


class UpstreamStatusError(ProxyError):
    """The upstream answered, but with a non-success status (relay path).

    The caller receives the same status code and the upstream reason phrase.
    """

    def __init__(self, status_code: int, reason: str) -> None:
        super().__init__(reason)
        self.status_code = status_code


# ─── Classification ───────────────────────────────────────────────────────────


def describe(exc: BaseException) -> str:
    """Human-readable cause text; some httpx exceptions stringify to ''."""
    text = str(exc).strip()
    return text or type(exc).__name__


def is_dns_failure(exc: BaseException) -> bool:
    """True when host resolution failed somewhere in the exception chain."""
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        text = str(current).lower()
        if any(marker in text for marker in _DNS_FAILURE_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


def classify_transport_error(exc: BaseException) -> ProxyError:
    """Map an exception raised while talking to the upstream onto the taxonomy.

    Order matters: a timeout is a timeout even if its message mentions DNS.
    """
    if isinstance(exc, ProxyError):
        return exc
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return UpstreamTimeout(cause=describe(exc))
    if isinstance(exc, httpx.ConnectError) and is_dns_failure(exc):
        return UpstreamNotFound(cause=describe(exc))
    if isinstance(exc, socket.gaierror):
        return UpstreamNotFound(cause=describe(exc))
    return UpstreamError(describe(exc))
