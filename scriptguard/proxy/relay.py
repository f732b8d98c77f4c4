"""Streaming relay — GET /proxy?url=<target>.

Transparently relays any remote resource (media, playlists, scripts, images):

  - The target is NOT pre-validated; malformed URLs fail at the transport
    layer and surface as 500 with the transport's own message.
  - Upstream headers: caller's User-Agent (or a default), caller's Referer only
    if sent, Accept-Encoding: identity.
  - Obtaining the upstream response is bounded by fetch.relay_timeout_s. The
    body itself is not time-bounded (indefinite streams are allowed); each read
    is still subject to the client read timeout.
  - Only FORWARDED_RESPONSE_HEADERS are copied back, plus relay-scope CORS.
  - The body is relayed chunk by chunk with aiter_raw(); it is never
    materialised in memory. Bytes reach the caller exactly as sent upstream.
  - If the caller disconnects mid-stream the upstream response is closed in
    the body generator's finally block.

Failure mapping:
  missing url                 → 400 {"error": "Please provide a ?url= parameter."}
  upstream answered non-2xx   → same status, {"error": "<upstream reason phrase>"}
  no upstream response at all → 500 {"error": "<raw transport message>"}
"""

from __future__ import annotations

import asyncio
from typing import AsyncGenerator, Mapping

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from scriptguard.config import Config, FetchConfig
from scriptguard.models.errors import UpstreamError, UpstreamStatusError, describe
from scriptguard.proxy.engine import get_config, get_http_client, require_target
from scriptguard.proxy.headers import (
    build_relay_request_headers,
    build_relay_response_headers,
    cors_headers,
)
from scriptguard.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["relay"])


async def open_relay(
    client: httpx.AsyncClient,
    target: str,
    caller_headers: Mapping[str, str],
    fetch: FetchConfig,
) -> httpx.Response:
    """Send the upstream request in streaming mode and return the open response.

    The caller owns the returned response and must close it.

    Raises:
        UpstreamStatusError: upstream answered with a non-2xx status.
        UpstreamError:       no upstream response could be obtained.
    """
    try:
        upstream_request = client.build_request(
            "GET",
            target,
            headers=build_relay_request_headers(caller_headers, fetch.relay_user_agent),
            timeout=httpx.Timeout(fetch.relay_timeout_s),
        )
        upstream_response = await asyncio.wait_for(
            client.send(upstream_request, stream=True),
            timeout=fetch.relay_timeout_s,
        )
    except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
        raise UpstreamError(
            f"timeout of {int(fetch.relay_timeout_s * 1000)}ms exceeded"
        ) from exc
    except Exception as exc:  # noqa: BLE001
        raise UpstreamError(describe(exc)) from exc

    if not upstream_response.is_success:
        await upstream_response.aclose()
        reason = upstream_response.reason_phrase or httpx.codes.get_reason_phrase(
            upstream_response.status_code
        )
        raise UpstreamStatusError(upstream_response.status_code, reason)

    return upstream_response


async def relay_body(
    upstream_response: httpx.Response,
    target: str,
) -> AsyncGenerator[bytes, None]:
    """Yield upstream body chunks as they arrive; always closes the upstream."""
    relayed = 0
    completed = False
    try:
        async for chunk in upstream_response.aiter_raw():
            relayed += len(chunk)
            yield chunk
        completed = True
    except httpx.HTTPError as exc:
        logger.warning(
            "relay_interrupted",
            url=target,
            bytes_relayed=relayed,
            error_type=type(exc).__name__,
            error=describe(exc),
        )
        raise
    finally:
        await upstream_response.aclose()
        logger.info("relay_closed", url=target, bytes_relayed=relayed, completed=completed)


@router.get("/proxy")
async def relay_handler(
    request: Request,
    config: Config = Depends(get_config),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> StreamingResponse:
    """Relay the target resource to the caller without buffering it."""
    target = require_target(request)

    upstream_response = await open_relay(client, target, request.headers, config.fetch)

    headers = build_relay_response_headers(upstream_response.headers)
    headers.update(cors_headers(relay=True))

    logger.info(
        "relay_started",
        url=target,
        upstream_status=upstream_response.status_code,
        content_type=headers.get("content-type"),
        content_length=headers.get("content-length"),
    )

    return StreamingResponse(
        content=relay_body(upstream_response, target),
        status_code=upstream_response.status_code,
        headers=headers,
    )
