"""
Structured Logging
structlog key/value logging with a per-request context.

Every log line emitted while a request is served carries its `request_id`
and `path`; the same id is returned in the `X-Request-ID` header and in the
error envelope.
"""
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from structlog.types import EventDict, Processor, WrappedLogger

from fleet_telemetry.core.config import settings

REQUEST_ID_HEADER = "X-Request-ID"
SERVICE_NAME = "fleet-telemetry"


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def _renderer() -> list[Processor]:
    if settings.environment == "development":
        return [structlog.dev.ConsoleRenderer(colors=True)]
    # Log shippers expect one JSON object per line
    return [
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def configure_logging() -> None:
    """Configure structlog and route stdlib logging to stdout."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        *_renderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if settings.debug else logging.INFO,
    )

    # Request logging comes from RequestContextMiddleware and the metrics layer
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if settings.db_echo else logging.WARNING
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def request_context(request_id: str | None, **fields: str) -> Iterator[str]:
    """
    Bind a request id (generated when missing) plus extra fields to every
    log line emitted inside the block. Yields the id.
    """
    request_id = request_id or str(uuid.uuid4())
    tokens = structlog.contextvars.bind_contextvars(request_id=request_id, **fields)
    try:
        yield request_id
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def current_request_id() -> str | None:
    """Request id bound by `request_context`, if any."""
    return structlog.contextvars.get_contextvars().get("request_id")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """One request id per request: log context, `request.state` and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        with request_context(
            request.headers.get(REQUEST_ID_HEADER),
            path=request.url.path,
            method=request.method,
        ) as request_id:
            request.state.request_id = request_id
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
