"""Chat relay — the pipeline behind POST /chat.

    body → validate → config check → rate limit → system prompt (+ web context) → gateway stream

``open()`` runs every step that can still fail with a proper HTTP status.
``stream_events()`` then turns the open gateway stream into the bytes of
the caller's ``text/event-stream`` body.

Usage:
    relay = ChatRelay(llm_service, rate_limiter, augmenter)
    stream = relay.open(identity, payload)
    return Response(relay.stream_events(stream), mimetype="text/event-stream")
"""
from __future__ import annotations

from typing import Any, Iterator

import structlog

from tutor_relay.models.requests import DEFAULT_MAX_MESSAGE_LENGTH, DEFAULT_MAX_MESSAGES
from tutor_relay.prompts.templates import build_system_instruction
from tutor_relay.services.context_augmenter import ContextAugmenter
from tutor_relay.services.llm_service import CompletionStream, LLMService
from tutor_relay.services.rate_limiter import RateLimiter
from tutor_relay.services.request_validator import validate_chat_request
from tutor_relay.services.stream_parser import DONE_FRAME, format_delta, format_error
from tutor_relay.utils.exceptions import ConfigurationError, RateLimitExceeded, UpstreamUnavailable

logger = structlog.get_logger(__name__)


class ChatRelay:
    """Runs one chat turn from raw body to relayed stream.

    Args:
        llm_service: Streaming completion gateway.
        rate_limiter: Per-identity admission control.
        augmenter: Web context builder.
        max_messages: Max turns per request.
        max_message_length: Per-turn content cap.
    """

    def __init__(
        self,
        llm_service: LLMService,
        rate_limiter: RateLimiter,
        augmenter: ContextAugmenter,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
    ) -> None:
        self._llm = llm_service
        self._limiter = rate_limiter
        self._augmenter = augmenter
        self._max_messages = max_messages
        self._max_message_length = max_message_length

    def open(self, identity: str, payload: Any) -> CompletionStream:
        """Validate, admit, compose the prompt, and open the gateway stream.

        Raises:
            InputValidationError: Bad body; nothing else has happened yet.
            ConfigurationError: Gateway key missing.
            RateLimitExceeded: Identity is out of turns for this window.
            UpstreamUnavailable: Gateway refused or could not be reached.
        """
        request = validate_chat_request(
            payload,
            max_messages=self._max_messages,
            max_message_length=self._max_message_length,
        )

        if not self._llm.configured:
            logger.error("gateway_not_configured")
            raise ConfigurationError("GATEWAY_API_KEY")

        if not self._limiter.admit(identity):
            raise RateLimitExceeded(retry_after=self._limiter.retry_after(identity))

        instruction = build_system_instruction(
            request.user_type,
            request.subject,
            request.mode,
            request.class_level,
        )
        web_context = self._augmenter.build_context(request.last_user_message, request.subject)

        logger.info(
            "relay_started",
            messages_count=len(request.messages),
            user_type=request.user_type,
            mode=request.mode,
            class_level=request.class_level,
            web_context=bool(web_context),
        )
        return self._llm.open_stream(instruction + web_context, request.history())

    def stream_events(self, stream: CompletionStream) -> Iterator[bytes]:
        """Re-frame gateway deltas for the caller, one frame per delta.

        If the caller disconnects, the generator is closed and the gateway
        connection is released with it.
        """
        try:
            for delta in stream:
                yield format_delta(delta)
            yield DONE_FRAME
        except UpstreamUnavailable as e:
            # Status 200 is already on the wire; report in-band instead
            yield format_error(e.message)
        except GeneratorExit:
            logger.info("client_disconnected", deltas_relayed=stream.delta_count)
            raise
        finally:
            stream.close()
