"""Chat blueprint — the streaming relay endpoint.

Routes:
    POST /chat → Stream an assistant answer as text/event-stream
"""
from __future__ import annotations

import structlog
from flask import Blueprint, Response, current_app, request, stream_with_context

from tutor_relay.auth.tokens import resolve_identity
from tutor_relay.utils.exceptions import InputValidationError

logger = structlog.get_logger(__name__)

chat_bp = Blueprint("chat", __name__)


@chat_bp.route("/chat", methods=["POST"])
def chat():
    """Relay one chat turn to the gateway and stream the answer back.

    Request JSON:
        {
            "messages": [{"role": "user", "content": "Что такое атом?"}],
            "userType": "SCHOOLER",     // optional
            "subject": "Физика",        // optional
            "mode": "explain",          // optional
            "classLevel": 8             // optional, 1-11
        }

    Response (200, text/event-stream):
        data: {"choices":[{"delta":{"content":"Атом"}}]}
        ...
        data: [DONE]

    Errors are JSON ``{"error": "...", "code": "..."}`` with status
    400 / 401 / 429 / 500 / 502 / 503 (see error handlers).
    """
    settings = current_app.config["SETTINGS"]

    # Authenticate before touching the body
    identity = resolve_identity(
        request.headers.get("Authorization"),
        settings.AUTH_JWT_SECRET,
        settings.AUTH_JWT_ALGORITHM,
        settings.AUTH_JWT_AUDIENCE,
    )
    structlog.contextvars.bind_contextvars(identity=identity)

    payload = request.get_json(force=True, silent=True)
    if payload is None:
        raise InputValidationError("Invalid JSON body")

    relay = current_app.config["CHAT_RELAY"]
    stream = relay.open(identity, payload)

    response = Response(
        stream_with_context(relay.stream_events(stream)),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # disable nginx buffering
        },
    )
    # Also covers a caller that goes away before the first frame
    response.call_on_close(stream.close)
    return response
