"""Global Flask error handlers for consistent JSON error responses.

Registers handlers for standard HTTP errors and custom TutorRelayError
exceptions, ensuring the API always returns:
    { "error": "...", "code": "..." }

Upstream error bodies and internal exception text never reach the caller.

Usage:
    from tutor_relay.middleware.error_handlers import register_error_handlers
    register_error_handlers(app)
"""
from __future__ import annotations

import math

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

import structlog

from tutor_relay.models.responses import ErrorResponse
from tutor_relay.utils.exceptions import (
    ConfigurationError,
    RateLimitExceeded,
    TutorRelayError,
    UpstreamRateLimited,
    UpstreamUnavailable,
)

logger = structlog.get_logger(__name__)


def _error_response(message: str, status: int, code: str, retry_after: float | None = None):
    """Create a standardized JSON error response.

    Returns:
        Tuple of (response, status_code).
    """
    response = jsonify(ErrorResponse(error=message, code=code).model_dump())
    if retry_after is not None:
        response.headers["Retry-After"] = str(max(1, math.ceil(retry_after)))
    return response, status


def register_error_handlers(app: Flask) -> None:
    """Register global error handlers on the Flask app."""

    # ── Custom Application Errors ─────────────────────────────────────

    @app.errorhandler(TutorRelayError)
    def handle_relay_error(e: TutorRelayError):
        """Handle all custom TutorRelayError exceptions."""
        if isinstance(e, ConfigurationError):
            logger.error("configuration_error", setting=e.setting)
        elif isinstance(e, UpstreamUnavailable):
            logger.warning(
                "upstream_failure",
                error_type=type(e).__name__,
                upstream_status=e.upstream_status,
                status_code=e.status_code,
            )
        elif not isinstance(e, RateLimitExceeded):
            # rate limiting is logged by the limiter itself
            logger.info(
                "request_rejected",
                error=e.message,
                error_type=type(e).__name__,
                status_code=e.status_code,
            )

        retry_after = e.retry_after if isinstance(e, (RateLimitExceeded, UpstreamRateLimited)) else None
        return _error_response(e.message, e.status_code, e.code, retry_after)

    # ── Werkzeug HTTP exceptions (404, 405, 413, ...) ─────────────────

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        code = (e.name or "error").lower().replace(" ", "_")
        return _error_response(e.description or "Unknown error", e.code or 500, code)

    # ── Catch-all for truly unhandled exceptions ──────────────────────

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        """Last resort handler for unhandled exceptions."""
        logger.error(
            "unexpected_error",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return _error_response("Внутренняя ошибка сервера", 500, "internal_error")
