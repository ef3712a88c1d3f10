"""Logging setup using structlog.

Goal:
- JSON logs on stdout, one event name per line.
- Every log line carries the component and, inside a request, the request_id.

Helpers:
- get_logger(component) is lazy, so module-level loggers created at import
  time still follow the configure_logging() call made later at startup.
- bind_request_context() / clear_request_context() wrap one inbound request:
  the HTTP middleware binds request_id, method and path into structlog
  contextvars, merge_contextvars adds them to every line, and the context is
  cleared when the response is done.
"""

from __future__ import annotations

import logging
import sys
import uuid
from typing import Any

import structlog


def configure_logging(log_level: str = "INFO") -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str, **kwargs: Any) -> structlog.BoundLogger:
    # Lazy: module-level loggers pick up the configuration applied later at startup.
    return structlog.get_logger(component=component, **kwargs)


def bind_request_context(method: str, path: str, request_id: str | None = None) -> str:
    """Start a fresh log context for one inbound request and return its id."""
    request_id = request_id or uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)
    return request_id


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
