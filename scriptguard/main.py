"""ScriptGuard FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - app = create_app() — module-level instance for uvicorn

Routes:
  GET /health        — liveness (scriptguard/health.py), never gated
  GET /?url=         — fetch + rewrite (scriptguard/proxy/document.py)
  GET /proxy?url=    — streaming relay (scriptguard/proxy/relay.py)
  OPTIONS *          — CORS preflight (scriptguard/proxy/middleware.py)

Startup sequence:
  1. load_config()          → app.state.config (block list fixed from here on)
  2. create_http_client()   → app.state.http_client (shared connection pool)
  3. app.state.ready = True

Shutdown (reverse):
  app.state.ready = False → close shared HTTP client
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scriptguard.config import Config, load_config
from scriptguard.health import router as health_router
from scriptguard.models.errors import ProxyError
from scriptguard.proxy.document import router as document_router
from scriptguard.proxy.engine import create_http_client
from scriptguard.proxy.headers import cors_headers
from scriptguard.proxy.middleware import CORSHeadersMiddleware, RequestContextMiddleware
from scriptguard.proxy.relay import router as relay_router
from scriptguard.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
# Configure logging at module import time (before any other imports that may log).
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 until the lifespan has finished startup.

    Gates the proxy routes, which need app.state.config and app.state.http_client.
    /health is deliberately not gated.
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="ScriptGuard is starting up")


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup and shutdown sequence."""
    logger.info("ScriptGuard starting up...")

    # load_config() raises SystemExit on an invalid file, before ready=True.
    config: Config = load_config()
    app.state.config = config
    logger.info(
        "Block list active",
        rules=[rule.rule for rule in config.blocklist],
        document_timeout_s=config.fetch.document_timeout_s,
        relay_timeout_s=config.fetch.relay_timeout_s,
    )

    http_client: httpx.AsyncClient = create_http_client()
    app.state.http_client = http_client
    logger.info("HTTP upstream client created")

    app.state.ready = True
    logger.info(
        "ScriptGuard ready",
        port=config.server.port,
        health=f"http://localhost:{config.server.port}/health",
    )

    yield

    logger.info("ScriptGuard shutting down...")
    app.state.ready = False

    try:
        await http_client.aclose()
        logger.info("HTTP upstream client closed")
    except Exception as exc:  # noqa: BLE001
        logger.warning("HTTP upstream client close error (non-fatal)", error=str(exc))

    logger.info("ScriptGuard shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the ScriptGuard FastAPI application.

    Call this function directly in tests to get an isolated app instance.
    The module-level `app` is created at import time for uvicorn:
        uvicorn scriptguard.main:app --host 0.0.0.0 --port 3000
    """
    application = FastAPI(
        title="ScriptGuard",
        description="Script-stripping document proxy and streaming CORS relay",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )

    # Requests arriving before startup completes get 503 on proxy routes.
    application.state.ready = False

    # LAST-added middleware is OUTERMOST.
    application.add_middleware(CORSHeadersMiddleware)
    application.add_middleware(RequestContextMiddleware)

    application.include_router(health_router)
    application.include_router(document_router, dependencies=[Depends(require_ready)])
    application.include_router(relay_router, dependencies=[Depends(require_ready)])

    @application.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
        log_method = logger.warning if exc.status_code < 500 else logger.error
        log_method(
            "request_failed",
            status_code=exc.status_code,
            error_type=type(exc).__name__,
            error=exc.message,
            cause=exc.cause or (str(exc.__cause__) if exc.__cause__ else None),
            path=str(request.url.path),
            target=request.query_params.get("url"),
        )
        return exc.to_response()

    # Registered on the Starlette base class so router 404/405s share the error shape.
    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    # Runs in ServerErrorMiddleware, outside CORSHeadersMiddleware.
    @application.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
            headers=cors_headers(),
        )

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────

app = create_app()


if __name__ == "__main__":
    from scriptguard.run import main

    main()
