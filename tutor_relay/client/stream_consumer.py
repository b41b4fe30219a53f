"""Client for the relay's streaming chat endpoint.

Issues ``POST /chat`` and hands every delta to a callback as soon as it is
decoded, in arrival order.

Usage:
    client = StreamChatClient("https://relay.example.com", token)
    transcript = ChatTranscript()
    client.send(transcript, "Что такое атом?", subject="Физика", class_level=8)
"""
from __future__ import annotations

from typing import Any, Callable

import httpx
import structlog

from tutor_relay.client.transcript import ChatTranscript
from tutor_relay.services.stream_parser import SSEDecoder, extract_delta

logger = structlog.get_logger(__name__)

RATE_LIMIT_MESSAGE = "Слишком много запросов. Подождите немного и попробуйте снова."
PAYMENT_REQUIRED_MESSAGE = "Необходимо пополнить баланс AI-кредитов."
SERVER_ERROR_MESSAGE = "Произошла ошибка"
EMPTY_RESPONSE_MESSAGE = "Пустой ответ от сервера"
CONNECTION_ERROR_MESSAGE = "Ошибка подключения. Проверьте интернет и попробуйте снова."


def _error_message(response: httpx.Response) -> str:
    if response.status_code == 429:
        return RATE_LIMIT_MESSAGE
    if response.status_code == 402:
        return PAYMENT_REQUIRED_MESSAGE
    try:
        body = response.json()
    except ValueError:
        return SERVER_ERROR_MESSAGE
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, str) and error else SERVER_ERROR_MESSAGE


def _dispatch(events: list[Any], on_delta: Callable[[str], None], on_error: Callable[[str], None]) -> bool:
    """Hand decoded events to the callbacks; False once an in-band error was reported."""
    for event in events:
        if isinstance(event, dict) and event.get("error"):
            on_error(str(event["error"]))
            return False
        delta = extract_delta(event)
        if delta:
            on_delta(delta)
    return True


class StreamChatClient:
    """Streaming chat client.

    Args:
        base_url: Relay base URL.
        token: Access token sent as ``Authorization: Bearer``.
        timeout: Read timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 120,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout, connect=10),
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def stream_chat(
        self,
        body: dict[str, Any],
        on_delta: Callable[[str], None],
        on_done: Callable[[], None],
        on_error: Callable[[str], None],
    ) -> None:
        """Send one chat request and drive the callbacks.

        Exactly one of ``on_done`` / ``on_error`` is called.
        """
        try:
            with self._client.stream("POST", "/chat", json=body) as response:
                if not response.is_success:
                    response.read()
                    on_error(_error_message(response))
                    return

                decoder = SSEDecoder()
                received_any = False
                for chunk in response.iter_bytes():
                    if not _dispatch(decoder.feed(chunk), on_delta, on_error):
                        return
                    received_any = received_any or bool(chunk)
                    if decoder.done:
                        break
                else:
                    if not _dispatch(decoder.finish(), on_delta, on_error):
                        return

                if not received_any:
                    on_error(EMPTY_RESPONSE_MESSAGE)
                    return
        except httpx.HTTPError as e:
            logger.warning("stream_chat_failed", error_type=type(e).__name__, error=str(e))
            on_error(CONNECTION_ERROR_MESSAGE)
            return

        on_done()

    def send(
        self,
        transcript: ChatTranscript,
        text: str,
        user_type: str = "SCHOOLER",
        subject: str = "Общий",
        mode: str = "explain",
        class_level: int | None = None,
    ) -> None:
        """Add a user turn and stream the assistant's answer into the transcript."""
        transcript.add_user(text)
        body: dict[str, Any] = {
            "messages": transcript.history(),
            "userType": user_type,
            "subject": subject,
            "mode": mode,
        }
        if class_level is not None:
            body["classLevel"] = class_level

        transcript.begin_assistant()
        self.stream_chat(
            body,
            on_delta=transcript.append_delta,
            on_done=transcript.finalize,
            on_error=transcript.fail,
        )
