"""Visible chat transcript that streamed deltas are folded into.

One assistant message grows as deltas arrive. If a turn fails before any
text arrived, its placeholder is removed so no empty bubble is ever left
behind, and an error bubble is shown instead. Earlier turns are never
touched.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone


class MessageStatus(str, enum.Enum):
    STREAMING = "streaming"
    FINAL = "final"
    ERROR = "error"


@dataclass
class TranscriptMessage:
    role: str
    content: str = ""
    status: MessageStatus = MessageStatus.FINAL
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ChatTranscript:
    """Ordered list of user, assistant, and error messages."""

    def __init__(self) -> None:
        self._messages: list[TranscriptMessage] = []
        self._pending: TranscriptMessage | None = None

    @property
    def messages(self) -> list[TranscriptMessage]:
        return list(self._messages)

    @property
    def streaming(self) -> bool:
        return self._pending is not None

    def add_user(self, text: str) -> TranscriptMessage:
        message = TranscriptMessage(role="user", content=text)
        self._messages.append(message)
        return message

    def begin_assistant(self) -> TranscriptMessage:
        """Append the placeholder that deltas will grow."""
        if self._pending is not None:
            raise RuntimeError("An assistant message is already streaming")
        self._pending = TranscriptMessage(role="assistant", status=MessageStatus.STREAMING)
        self._messages.append(self._pending)
        return self._pending

    def append_delta(self, text: str) -> None:
        if self._pending is None:
            raise RuntimeError("No assistant message is streaming")
        self._pending.content += text

    def finalize(self) -> None:
        """Mark the streaming message complete; an empty one is dropped."""
        pending, self._pending = self._pending, None
        if pending is None:
            return
        if pending.content:
            pending.status = MessageStatus.FINAL
        else:
            self._messages.remove(pending)

    def fail(self, error: str) -> None:
        """End the streaming turn with an error bubble.

        Text that already arrived is kept as a finished message.
        """
        pending, self._pending = self._pending, None
        if pending is not None:
            if pending.content:
                pending.status = MessageStatus.FINAL
            else:
                self._messages.remove(pending)
        self._messages.append(TranscriptMessage(role="error", content=error, status=MessageStatus.ERROR))

    def history(self) -> list[dict[str, str]]:
        """Turns to send with the next request (finished user/assistant only)."""
        return [
            {"role": m.role, "content": m.content}
            for m in self._messages
            if m.role in ("user", "assistant") and m.status is MessageStatus.FINAL and m.content
        ]
