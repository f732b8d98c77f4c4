"""Cross-cutting HTTP middleware for ScriptGuard.

CORSHeadersMiddleware:
  - Every response carries Access-Control-Allow-Origin/-Methods/-Headers.
    Headers a handler already set win (the relay narrows methods to
    "GET, OPTIONS"); everything else gets the root-scope set.
  - Any OPTIONS request is answered here with 200 and an empty body; it never
    reaches a route.
  Starlette's CORSMiddleware only decorates requests that carry an Origin
  header; this service must emit the headers unconditionally.

RequestContextMiddleware:
  - Binds a fresh request id (and method/path) into the structlog context so
    every log line emitted for one request correlates.

Registration order in create_app(): the LAST-added middleware is OUTERMOST.
RequestContextMiddleware is added last so even preflight answers are logged
with an id.
"""

from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from scriptguard.proxy.headers import cors_headers
from scriptguard.utils.logger import bind_request, get_logger, unbind_request

logger = get_logger(__name__)


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Unconditional permissive CORS plus OPTIONS preflight short-circuit."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        if request.method == "OPTIONS":
            logger.debug("cors_preflight", path=request.url.path)
            return Response(status_code=200, headers=cors_headers())

        response = await call_next(request)
        for name, value in cors_headers().items():
            if name not in response.headers:
                response.headers[name] = value
        return response


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request-scoped logging context for the duration of one request."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        bind_request(
            uuid.uuid4().hex,
            method=request.method,
            path=request.url.path,
        )
        try:
            return await call_next(request)
        finally:
            unbind_request()
