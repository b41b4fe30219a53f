"""Request ID middleware for log correlation.

Every request gets an ID bound into the structlog context and echoed back
as ``X-Request-ID``. A caller-supplied ID is reused when it looks like an
ID (letters, digits, ``-_.:``, at most 128 chars); anything else is replaced
so arbitrary header text never lands in the logs.

Usage:
    from tutor_relay.middleware.request_id import init_request_id_middleware
    init_request_id_middleware(app)
"""
from __future__ import annotations

import re
import uuid

import structlog
from flask import Flask, g, request

_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._:\-]{1,128}")


def resolve_request_id(header_value: str | None) -> str:
    """Reuse a well-formed incoming ID, otherwise mint a UUID4."""
    if header_value and _REQUEST_ID_RE.fullmatch(header_value):
        return header_value
    return str(uuid.uuid4())


def init_request_id_middleware(app: Flask) -> None:
    """Register before/after hooks for request ID tracing."""
    logger = structlog.get_logger(__name__)

    @app.before_request
    def inject_request_id() -> None:
        g.request_id = resolve_request_id(request.headers.get("X-Request-ID"))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=g.request_id,
            method=request.method,
            path=request.path,
        )
        logger.debug("request_started")

    @app.after_request
    def attach_request_id(response):
        response.headers["X-Request-ID"] = g.get("request_id", "unknown")

        # For event streams this fires before the body is sent; the relay
        # logs completion or disconnect itself
        logger.debug(
            "response_started" if response.is_streamed else "request_completed",
            status=response.status_code,
        )
        return response
