"""Programmatic uvicorn entry point for ScriptGuard.

Reads host and port from the loaded config (0.0.0.0:3000 by default, PORT/HOST
env vars override) and starts uvicorn.

Usage:
    python -m scriptguard.run     # reads .scriptguard/config.yaml
    scriptguard                   # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from scriptguard.config import load_config

# Matches the httpx pool size (POOL_MAX_CONNECTIONS). Excess connections get 503.
UVICORN_LIMIT_CONCURRENCY: int = 100

UVICORN_BACKLOG: int = 128

# Relays may hold a connection open for a long time; idle keep-alives may not.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the ScriptGuard server.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()

    uvicorn.run(
        "scriptguard.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
