"""Structured logging for ScriptGuard (structlog).

Log lines are JSON in production and coloured console output in development.
Per-request fields (request_id, path) are bound through structlog's contextvars
so every line a handler emits correlates without passing ids around.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Any, Optional

import structlog
from structlog.types import Processor

from scriptguard.constants import SLOW_REWRITE_MS


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the whole process.

    Args:
        log_level:   DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_output: JSON lines when True, console renderer otherwise.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = "scriptguard") -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)


def bind_request(request_id: str, **fields: Any) -> None:
    """Bind request-scoped fields for all subsequent log lines in this context."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **fields)


def unbind_request() -> None:
    structlog.contextvars.clear_contextvars()


class PerformanceLogger:
    """Times a block and logs its duration; slow runs are logged at WARNING.

    Usage:
        with PerformanceLogger("document_rewrite", logger, url=target):
            ...
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        slow_ms: float = SLOW_REWRITE_MS,
        **context: Any,
    ) -> None:
        self.operation = operation
        self.logger = logger or get_logger()
        self.slow_ms = slow_ms
        self.context = context
        self._start: float = 0.0
        self._end: float = 0.0

    def __enter__(self) -> "PerformanceLogger":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._end = time.perf_counter()
        duration_ms = round(self.duration_ms, 3)

        if exc_type is not None:
            self.logger.error(
                f"{self.operation}_failed",
                duration_ms=duration_ms,
                error=str(exc_val),
                **self.context,
            )
            return

        log_method = self.logger.warning if duration_ms > self.slow_ms else self.logger.debug
        log_method(f"{self.operation}_completed", duration_ms=duration_ms, **self.context)

    @property
    def duration_ms(self) -> float:
        end = self._end or time.perf_counter()
        return (end - self._start) * 1000


# Sensible defaults until main.py reconfigures from the environment.
configure_logging()
