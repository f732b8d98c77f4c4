"""Shared upstream HTTP machinery for ScriptGuard.

  - create_http_client(): the single httpx.AsyncClient created by the lifespan
    and stored in app.state.http_client. It is NEVER instantiated per-request;
    it carries no request state, only the connection pool.
  - get_config() / get_http_client(): FastAPI dependencies that hand the
    startup-time Config and client to the handlers (document.py, relay.py).
  - require_target(): extracts ?url=, raising InvalidTarget when it is absent.

Per-request timeouts are passed on each request (document and relay pipelines
use different bounds), so the client-level timeout is only a backstop.
"""

from __future__ import annotations

from typing import Optional

import httpx
from fastapi import Request

from scriptguard.config import Config
from scriptguard.constants import (
    MAX_REDIRECTS,
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
    RELAY_FETCH_TIMEOUT_S,
)
from scriptguard.models.errors import InvalidTarget
from scriptguard.utils.logger import get_logger

logger = get_logger(__name__)

MISSING_URL_MESSAGE = "Please provide a ?url= parameter."


# ─── httpx.AsyncClient factory ────────────────────────────────────────────────


def create_http_client() -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient with connection pooling configured.

    Redirects are followed (up to MAX_REDIRECTS): both pipelines return the
    final resource, never a 3xx.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(RELAY_FETCH_TIMEOUT_S),
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
    )


# ─── Dependencies ─────────────────────────────────────────────────────────────


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def require_target(
    request: Request,
    example: Optional[str] = None,
) -> str:
    """Return the raw ?url= value or raise InvalidTarget (400) when missing."""
    target = request.query_params.get("url")
    if not target:
        raise InvalidTarget(MISSING_URL_MESSAGE, example=example)
    return target
