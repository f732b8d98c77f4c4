"""Health endpoint for ScriptGuard.

GET /health always answers 200 with a fixed payload. It does not consult
upstreams, config or readiness: it only proves the process is serving HTTP.
Polled by container / platform health checks.
"""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["health"])

HEALTH_PAYLOAD: dict[str, str] = {
    "status": "OK",
    "message": "Proxy server is running",
}


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness check."""
    return dict(HEALTH_PAYLOAD)
