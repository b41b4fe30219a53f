"""Completion gateway service for streamed chat completions.

Talks to an OpenAI-compatible ``/chat/completions`` endpoint with
``stream: true`` and exposes the answer as a one-shot iterator of text
deltas. Status codes are checked before the first byte is handed out, so a
failing gateway surfaces as a typed exception the route can still turn
into a proper HTTP error.

Usage:
    from tutor_relay.services.llm_service import LLMService

    service = LLMService(api_key="...", model="google/gemini-3-flash-preview")
    stream = service.open_stream(system_prompt, [{"role": "user", "content": "Привет"}])
    try:
        for delta in stream:
            print(delta, end="")
    finally:
        stream.close()
"""
from __future__ import annotations

import enum
import time
from typing import Any, Iterator

import httpx
import structlog

from tutor_relay.services.stream_parser import SSEDecoder, extract_delta
from tutor_relay.utils.exceptions import (
    UpstreamPaymentRequired,
    UpstreamRateLimited,
    UpstreamUnavailable,
)

logger = structlog.get_logger(__name__)


class StreamState(str, enum.Enum):
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class CompletionStream:
    """Ordered, finite, non-restartable sequence of text deltas.

    Wraps an open streaming httpx response. Iteration pulls one chunk from
    the network at a time; ``close()`` releases the connection and is safe
    to call more than once.

    States: STREAMING → DONE (sentinel or clean EOF) | FAILED (network
    error mid-stream) | CANCELLED (closed before the end, e.g. the caller
    went away).
    """

    def __init__(self, response: httpx.Response, model: str = "") -> None:
        self._response = response
        self._model = model
        self._decoder = SSEDecoder()
        self._started = time.monotonic()
        self._consumed = False
        self.state = StreamState.STREAMING
        self.delta_count = 0

    def __iter__(self) -> Iterator[str]:
        if self._consumed:
            raise RuntimeError("CompletionStream can only be iterated once")
        self._consumed = True
        return self._deltas()

    def _deltas(self) -> Iterator[str]:
        try:
            for chunk in self._response.iter_bytes():
                for event in self._decoder.feed(chunk):
                    delta = extract_delta(event)
                    if delta:
                        self.delta_count += 1
                        yield delta
                if self._decoder.done:
                    break
            else:
                for event in self._decoder.finish():
                    delta = extract_delta(event)
                    if delta:
                        self.delta_count += 1
                        yield delta

            self.state = StreamState.DONE
            logger.info(
                "upstream_stream_completed",
                model=self._model,
                deltas=self.delta_count,
                duration_ms=round((time.monotonic() - self._started) * 1000),
            )
        except httpx.HTTPError as e:
            self.state = StreamState.FAILED
            logger.error(
                "upstream_stream_failed",
                deltas=self.delta_count,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise UpstreamUnavailable() from e
        finally:
            self.close()

    def close(self) -> None:
        if self.state is StreamState.STREAMING:
            self.state = StreamState.CANCELLED
        self._response.close()


class LLMService:
    """Service for streamed chat completions against the gateway.

    No retries happen here; retry policy belongs to the caller.

    Args:
        api_key: Gateway bearer key. Empty means "not configured".
        model: Model identifier sent with every request.
        base_url: Gateway base URL.
        timeout: Read timeout in seconds (per network read, not total).
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str,
        model: str = "google/gemini-3-flash-preview",
        base_url: str = "https://ai.gateway.lovable.dev/v1",
        timeout: float = 120,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")

        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout, connect=10),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "text/event-stream",
            },
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def model(self) -> str:
        return self._model

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ── Core API ──────────────────────────────────────────────────────

    def open_stream(self, system_prompt: str, messages: list[dict[str, Any]]) -> CompletionStream:
        """Start a streamed completion.

        Args:
            system_prompt: Fully composed system prompt (web context included).
            messages: Conversation turns, oldest first.

        Returns:
            An open CompletionStream; the caller must iterate or close it.

        Raises:
            UpstreamRateLimited: Gateway answered 429.
            UpstreamPaymentRequired: Gateway answered 402.
            UpstreamUnavailable: Any other non-2xx status or a transport error.
        """
        payload = {
            "model": self._model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "stream": True,
        }
        request = self._client.build_request("POST", "/chat/completions", json=payload)

        logger.info(
            "llm_request",
            model=self._model,
            messages_count=len(messages),
            system_prompt_length=len(system_prompt),
        )
        start = time.monotonic()
        try:
            response = self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            logger.error("llm_timeout", error=str(e))
            raise UpstreamUnavailable(message="AI сервис не ответил вовремя") from e
        except httpx.HTTPError as e:
            logger.error("llm_connection_error", error_type=type(e).__name__, error=str(e))
            raise UpstreamUnavailable() from e

        if not response.is_success:
            self._raise_for_status(response)

        logger.info(
            "upstream_stream_opened",
            status=response.status_code,
            duration_ms=round((time.monotonic() - start) * 1000),
        )
        return CompletionStream(response, model=self._model)

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Log the upstream error body (truncated) and raise the mapped error."""
        try:
            body = response.read().decode("utf-8", errors="replace")[:500]
        except httpx.HTTPError:
            body = ""
        finally:
            response.close()

        logger.error("upstream_error", status=response.status_code, body=body)

        if response.status_code == 429:
            raise UpstreamRateLimited(retry_after=_parse_retry_after(response.headers.get("Retry-After")))
        if response.status_code == 402:
            raise UpstreamPaymentRequired()
        raise UpstreamUnavailable(upstream_status=response.status_code)
