"""Pydantic models for chat request validation.

Limits that are configurable (turn count, per-turn length) are read from
the validation context, so the same models serve any configuration:

    ChatRequest.model_validate(payload, context={"max_messages": 50})
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from tutor_relay.utils.sanitizer import sanitize_text

USER_TYPES = ("PRESCHOOLER", "SCHOOLER")
DEFAULT_USER_TYPE = "SCHOOLER"
DEFAULT_SUBJECT = "Общий"
DEFAULT_MODE = "explain"

DEFAULT_MAX_MESSAGES = 50
DEFAULT_MAX_MESSAGE_LENGTH = 4000
MAX_SUBJECT_LENGTH = 100
MAX_MODE_LENGTH = 50

MIN_CLASS_LEVEL = 1
MAX_CLASS_LEVEL = 11


def _limit(info: ValidationInfo, name: str, default: int) -> int:
    context = info.context or {}
    return int(context.get(name, default))


class ChatTurn(BaseModel):
    """One message of the conversation, replayed to the model in order.

    Attributes:
        role: ``user`` or ``assistant``.
        content: Sanitized, non-empty text (bounded by ``max_message_length``).
    """
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, v: Any, info: ValidationInfo) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("content must be a non-empty string")
        cleaned = sanitize_text(v, _limit(info, "max_message_length", DEFAULT_MAX_MESSAGE_LENGTH))
        if not cleaned:
            raise ValueError("content is empty after removing control characters")
        return cleaned

    def to_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class ChatRequest(BaseModel):
    """Validated envelope for one relay invocation.

    Missing optional fields take defaults; optional fields that are present
    but invalid (blank subject, out-of-range class level) fail the request.
    ``user_type`` is the exception: unknown values fall back to the default.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    messages: list[ChatTurn]
    user_type: str = Field(default=DEFAULT_USER_TYPE, alias="userType")
    subject: str = DEFAULT_SUBJECT
    mode: str = DEFAULT_MODE
    class_level: int | None = Field(default=None, alias="classLevel")

    @field_validator("messages", mode="before")
    @classmethod
    def validate_messages(cls, v: Any, info: ValidationInfo) -> list:
        if not isinstance(v, list):
            raise ValueError("messages must be a list")
        if not v:
            raise ValueError("messages must not be empty")
        max_messages = _limit(info, "max_messages", DEFAULT_MAX_MESSAGES)
        if len(v) > max_messages:
            raise ValueError(f"too many messages (max {max_messages})")
        return v

    @field_validator("user_type", mode="before")
    @classmethod
    def validate_user_type(cls, v: Any) -> str:
        return v if v in USER_TYPES else DEFAULT_USER_TYPE

    @field_validator("subject", mode="before")
    @classmethod
    def validate_subject(cls, v: Any) -> str:
        if v is None:
            return DEFAULT_SUBJECT
        if not isinstance(v, str):
            raise ValueError("subject must be a string")
        cleaned = sanitize_text(v, MAX_SUBJECT_LENGTH)
        if not cleaned:
            raise ValueError("subject must not be empty")
        return cleaned

    @field_validator("mode", mode="before")
    @classmethod
    def validate_mode(cls, v: Any) -> str:
        if v is None:
            return DEFAULT_MODE
        if not isinstance(v, str):
            raise ValueError("mode must be a string")
        return sanitize_text(v, MAX_MODE_LENGTH) or DEFAULT_MODE

    @field_validator("class_level", mode="before")
    @classmethod
    def validate_class_level(cls, v: Any) -> int | None:
        if v is None:
            return None
        # bool is an int subclass; JSON numbers may arrive as 5.0
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"classLevel must be an integer between {MIN_CLASS_LEVEL} and {MAX_CLASS_LEVEL}")
        if not MIN_CLASS_LEVEL <= v <= MAX_CLASS_LEVEL:
            raise ValueError(f"classLevel must be between {MIN_CLASS_LEVEL} and {MAX_CLASS_LEVEL}")
        return v

    @property
    def last_user_message(self) -> str:
        """Content of the newest user turn, which drives the search heuristic."""
        for turn in reversed(self.messages):
            if turn.role == "user":
                return turn.content
        return ""

    def history(self) -> list[dict[str, str]]:
        return [turn.to_message() for turn in self.messages]
