"""Document fetch-and-rewrite pipeline — GET /?url=<target>.

  validate → normalize → fetch (browser identity, one attempt, whole-request
  bound) → parse → strip blocked scripts → inject <base> → serialize

Failure mapping (rendered by the ProxyError handler in main.py):
  missing / non-absolute url   → 400 InvalidTarget (no upstream request made)
  host does not resolve        → 404 UpstreamNotFound
  bound exceeded               → 408 UpstreamTimeout
  non-2xx upstream, any other  → 500 UpstreamError "Error fetching URL: <cause>"
"""

from __future__ import annotations

import asyncio

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from scriptguard.config import Config, FetchConfig
from scriptguard.constants import USAGE_EXAMPLE
from scriptguard.models.errors import (
    UpstreamError,
    classify_transport_error,
    describe,
)
from scriptguard.proxy.engine import get_config, get_http_client, require_target
from scriptguard.proxy.headers import build_document_request_headers
from scriptguard.proxy.rewriter import rewrite_document
from scriptguard.proxy.urls import normalize_target
from scriptguard.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["document"])

FETCH_ERROR_PREFIX = "Error fetching URL: "


async def fetch_document(
    client: httpx.AsyncClient,
    url: str,
    fetch: FetchConfig,
) -> httpx.Response:
    """GET ``url`` and return the fully-read response.

    The whole exchange (connect, redirects, body transfer) is bounded by
    ``fetch.document_timeout_s``. Non-2xx answers are failures.

    Raises:
        ProxyError: UpstreamTimeout, UpstreamNotFound or UpstreamError.
    """

    async def _get() -> httpx.Response:
        response = await client.get(
            url,
            headers=build_document_request_headers(fetch.document_user_agent),
            timeout=httpx.Timeout(fetch.document_timeout_s),
        )
        response.raise_for_status()
        return response

    try:
        return await asyncio.wait_for(_get(), timeout=fetch.document_timeout_s)
    except httpx.HTTPStatusError as exc:
        raise UpstreamError(
            f"{FETCH_ERROR_PREFIX}Request failed with status code {exc.response.status_code}"
        ) from exc
    except Exception as exc:  # noqa: BLE001
        error = classify_transport_error(exc)
        if type(error) is UpstreamError:
            error = UpstreamError(f"{FETCH_ERROR_PREFIX}{error.message}")
        raise error from exc


@router.get("/")
async def rewrite_handler(
    request: Request,
    config: Config = Depends(get_config),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> HTMLResponse:
    """Fetch the target document and return it with blocked scripts removed."""
    target = normalize_target(require_target(request, example=USAGE_EXAMPLE))

    response = await fetch_document(client, target, config.fetch)

    try:
        with PerformanceLogger("document_rewrite", logger, url=target):
            result = rewrite_document(
                response.content,
                target,
                config.blocklist,
                encoding=response.charset_encoding,
            )
    except Exception as exc:  # noqa: BLE001
        raise UpstreamError(f"{FETCH_ERROR_PREFIX}{describe(exc)}") from exc

    logger.info(
        "document_rewritten",
        url=target,
        upstream_status=response.status_code,
        bytes_in=len(response.content),
        scripts_removed=result.removed_count,
        matched_rules=sorted(set(result.removed)),
    )
    return HTMLResponse(content=result.html)
