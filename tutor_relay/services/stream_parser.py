"""Incremental decoder for ``data:``-framed event streams.

The gateway sends OpenAI-style server-sent events:

    data: {"choices":[{"delta":{"content":"Прив"}}]}
    data: {"choices":[{"delta":{"content":"ет"}}]}
    data: [DONE]

Network reads split that byte stream at arbitrary points (mid-line, even
mid-character), so SSEDecoder keeps an explicit buffer: bytes go through an
incremental UTF-8 decoder, complete lines are parsed, and the trailing
partial line waits for the next chunk.

A ``data:`` line whose payload is not complete JSON stays at the head of the
buffer and is retried when more bytes arrive; ``finish()`` gives whatever is
left one last best-effort pass and drops what still does not parse.

The same module formats the frames the relay sends back to its callers.
"""
from __future__ import annotations

import codecs
import json
from typing import Any

import structlog

from tutor_relay.utils.exceptions import FramingError

logger = structlog.get_logger(__name__)

DATA_PREFIX = "data:"
COMMENT_PREFIX = ":"
DONE_SENTINEL = "[DONE]"
DONE_FRAME = b"data: [DONE]\n\n"


class SSEDecoder:
    """Stateful line decoder: bytes in, parsed JSON events out.

    Once the ``[DONE]`` sentinel is seen, ``done`` is set and every later
    byte is ignored.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    @property
    def pending(self) -> str:
        """Buffered text not yet turned into events."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[Any]:
        """Add a chunk of bytes and return the events completed by it."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)

        events: list[Any] = []
        while not self.done:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            try:
                event = self._parse_line(line)
            except FramingError:
                # Leave the line buffered and wait for more bytes
                break
            self._buffer = self._buffer[newline + 1:]
            if event is not None:
                events.append(event)
        return events

    def finish(self) -> list[Any]:
        """Flush the decoder after the byte stream has ended."""
        if self.done:
            self._buffer = ""
            return []
        self._buffer += self._decoder.decode(b"", final=True)

        events: list[Any] = []
        for line in self._buffer.split("\n"):
            try:
                event = self._parse_line(line)
            except FramingError:
                logger.warning("stream_residual_dropped", length=len(line))
                continue
            if self.done:
                break
            if event is not None:
                events.append(event)
        self._buffer = ""
        return events

    def _parse_line(self, line: str) -> Any | None:
        """Parse one line; returns the JSON event or None for non-event lines.

        Raises:
            FramingError: The ``data:`` payload is not complete JSON.
        """
        if line.endswith("\r"):
            line = line[:-1]
        if not line.strip() or line.startswith(COMMENT_PREFIX):
            return None
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            self.done = True
            return None
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise FramingError(line) from e


def extract_delta(event: Any) -> str | None:
    """Return ``choices[0].delta.content`` when it is a non-empty string."""
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) and content else None


# ── Outbound framing ──────────────────────────────────────────────────

def _frame(payload: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def format_delta(content: str) -> bytes:
    """Frame one text delta in the gateway's chunk shape."""
    return _frame({"choices": [{"delta": {"content": content}}]})


def format_error(message: str) -> bytes:
    """Frame an in-stream failure (sent when the upstream dies after 200)."""
    return _frame({"error": message})
