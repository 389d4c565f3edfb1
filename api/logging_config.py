#!/usr/bin/env python3
"""
Structured logging for the settlement API

Route handlers log events with keyword context (``logger.info("broadcast_accepted",
txid=...)``). Every event emitted while a request is being served carries
that request's correlation id, so a verify call and the broadcast that
follows it can be traced through the relay logs.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

CORRELATION_HEADER = "X-Correlation-ID"
SERVICE_NAME = "ordinal-settlement"


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_structured_logging(mode: str = "production"):
    """
    Configure structlog for the API process.

    JSON lines in production; plain key=value console output in development.
    Events pass through the stdlib logging level filter first.
    """
    if mode == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _add_service,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a correlation id.

    Reuses the caller's ``X-Correlation-ID`` when present, otherwise
    generates one; binds it into the structlog context for the duration
    of the request and echoes it in the response headers.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id, path=request.url.path
        )
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


def get_logger(name: str):
    """structlog logger for ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)
