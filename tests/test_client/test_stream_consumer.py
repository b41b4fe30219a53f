"""Tests for the streaming chat client."""
import httpx
import pytest

from tutor_relay.client.stream_consumer import (
    CONNECTION_ERROR_MESSAGE,
    EMPTY_RESPONSE_MESSAGE,
    PAYMENT_REQUIRED_MESSAGE,
    RATE_LIMIT_MESSAGE,
    SERVER_ERROR_MESSAGE,
    StreamChatClient,
)
from tutor_relay.client.transcript import ChatTranscript


class Recorder:
    def __init__(self):
        self.deltas = []
        self.done = 0
        self.errors = []

    def callbacks(self):
        return {
            "on_delta": self.deltas.append,
            "on_done": self._on_done,
            "on_error": self.errors.append,
        }

    def _on_done(self):
        self.done += 1


def _client(handler):
    return StreamChatClient("https://relay.test", "token", transport=httpx.MockTransport(handler))


class TestStreamChat:
    """Tests for StreamChatClient.stream_chat() against canned responses."""

    def test_deltas_in_order(self, sse):
        body = sse("Раз", " два")
        chunks = [body[i:i + 5] for i in range(0, len(body), 5)]
        recorder = Recorder()
        _client(lambda r: httpx.Response(200, content=iter(chunks))).stream_chat({}, **recorder.callbacks())

        assert recorder.deltas == ["Раз", " два"]
        assert recorder.done == 1
        assert recorder.errors == []

    def test_sends_bearer_token(self, sse):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=sse("x"))

        _client(handler).stream_chat({"messages": []}, **Recorder().callbacks())
        assert seen[0].headers["Authorization"] == "Bearer token"
        assert seen[0].url.path == "/chat"

    @pytest.mark.parametrize(
        "status, body, expected",
        [
            (429, {"error": "x", "code": "rate_limited"}, RATE_LIMIT_MESSAGE),
            (402, {"error": "x"}, PAYMENT_REQUIRED_MESSAGE),
            (400, {"error": "messages: must not be empty", "code": "invalid_request"}, "messages: must not be empty"),
            (500, {"unexpected": True}, SERVER_ERROR_MESSAGE),
        ],
    )
    def test_http_errors(self, status, body, expected):
        recorder = Recorder()
        _client(lambda r: httpx.Response(status, json=body)).stream_chat({}, **recorder.callbacks())
        assert recorder.errors == [expected]
        assert recorder.done == 0

    def test_non_json_error_body(self):
        recorder = Recorder()
        _client(lambda r: httpx.Response(502, content=b"Bad Gateway")).stream_chat({}, **recorder.callbacks())
        assert recorder.errors == [SERVER_ERROR_MESSAGE]

    def test_empty_body(self):
        recorder = Recorder()
        _client(lambda r: httpx.Response(200, content=b"")).stream_chat({}, **recorder.callbacks())
        assert recorder.errors == [EMPTY_RESPONSE_MESSAGE]

    def test_in_band_error(self, sse):
        body = sse("начало", done=False) + 'data: {"error": "Ошибка AI сервиса"}\n\n'.encode("utf-8")
        recorder = Recorder()
        _client(lambda r: httpx.Response(200, content=body)).stream_chat({}, **recorder.callbacks())
        assert recorder.deltas == ["начало"]
        assert recorder.errors == ["Ошибка AI сервиса"]
        assert recorder.done == 0

    def test_error_delivered_at_final_flush(self, sse):
        # The malformed line holds back everything after it until the stream ends
        body = (
            sse("начало", done=False)
            + b"data: {broken\n"
            + 'data: {"error": "Ошибка AI сервиса"}\n\n'.encode("utf-8")
        )
        recorder = Recorder()
        _client(lambda r: httpx.Response(200, content=body)).stream_chat({}, **recorder.callbacks())
        assert recorder.deltas == ["начало"]
        assert recorder.errors == ["Ошибка AI сервиса"]
        assert recorder.done == 0

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        recorder = Recorder()
        _client(handler).stream_chat({}, **recorder.callbacks())
        assert recorder.errors == [CONNECTION_ERROR_MESSAGE]


class TestAgainstRelay:
    """Client and relay wired together over WSGI."""

    def test_send_streams_into_transcript(self, app, token, gateway, sse):
        gateway.chunks = [sse("Атом ", "это ", "частица.")]
        client = StreamChatClient("http://relay", token, transport=httpx.WSGITransport(app=app))
        transcript = ChatTranscript()

        client.send(transcript, "Что такое атом?", subject="Физика", class_level=8)

        assert [(m.role, m.content) for m in transcript.messages] == [
            ("user", "Что такое атом?"),
            ("assistant", "Атом это частица."),
        ]
        assert transcript.streaming is False
        payload = gateway.payloads[0]
        assert payload["messages"][1:] == [{"role": "user", "content": "Что такое атом?"}]

    def test_send_rejected_turn(self, app, gateway):
        client = StreamChatClient("http://relay", "bad-token", transport=httpx.WSGITransport(app=app))
        transcript = ChatTranscript()

        client.send(transcript, "Привет")

        assert [m.role for m in transcript.messages] == ["user", "error"]
        assert transcript.messages[-1].content == "Invalid or expired token"
        assert gateway.requests == []

    def test_follow_up_turn_sends_history(self, app, token, gateway, sse):
        client = StreamChatClient("http://relay", token, transport=httpx.WSGITransport(app=app))
        transcript = ChatTranscript()

        gateway.chunks = [sse("Ответ 1")]
        client.send(transcript, "Вопрос 1")
        gateway.chunks = [sse("Ответ 2")]
        client.send(transcript, "Вопрос 2")

        assert gateway.payloads[1]["messages"][1:] == [
            {"role": "user", "content": "Вопрос 1"},
            {"role": "assistant", "content": "Ответ 1"},
            {"role": "user", "content": "Вопрос 2"},
        ]
