"""Request validator — turns an untrusted JSON body into a ChatRequest.

The only exception that leaves this module is InputValidationError, whose
message names the offending field.
"""
from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from tutor_relay.models.requests import (
    DEFAULT_MAX_MESSAGE_LENGTH,
    DEFAULT_MAX_MESSAGES,
    ChatRequest,
)
from tutor_relay.utils.exceptions import InputValidationError


def _describe(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
    return f"{location}: {message}" if location else message


def validate_chat_request(
    payload: Any,
    max_messages: int = DEFAULT_MAX_MESSAGES,
    max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
) -> ChatRequest:
    """Validate and sanitize a parsed chat request body.

    Args:
        payload: Parsed JSON body (any type).
        max_messages: Max number of turns accepted.
        max_message_length: Per-turn content cap; longer content is truncated.

    Returns:
        A fully typed ChatRequest.

    Raises:
        InputValidationError: With a human-readable reason.
    """
    if not isinstance(payload, dict):
        raise InputValidationError("Request body must be a JSON object")

    try:
        return ChatRequest.model_validate(
            payload,
            context={
                "max_messages": max_messages,
                "max_message_length": max_message_length,
            },
        )
    except ValidationError as e:
        raise InputValidationError(_describe(e)) from e
