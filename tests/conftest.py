"""Shared pytest fixtures for the relay test suite.

Provides reusable fixtures for:
- Test settings (no .env, test credentials)
- Fake gateway and search APIs served through httpx.MockTransport
- Flask app / test client wired to the fakes
- Access tokens
"""
import json

import httpx
import pytest

from tutor_relay import create_app
from tutor_relay.api_clients.search_client import WebSearchClient
from tutor_relay.auth.tokens import create_access_token
from tutor_relay.config import Settings
from tutor_relay.services.llm_service import LLMService

JWT_SECRET = "test-jwt-secret"


def sse_body(*deltas, done=True) -> bytes:
    """Build a gateway-style event stream carrying ``deltas``."""
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": d}}]}, ensure_ascii=False) + "\n\n"
        for d in deltas
    ]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


class FakeGateway:
    """Records requests and answers like the completion gateway."""

    def __init__(self):
        self.requests = []
        self.status = 200
        self.chunks = [sse_body("Привет", "! Чем помочь?")]
        self.error_body = {"error": {"message": "upstream internal detail"}}

    def handler(self, request):
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, json=self.error_body)
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=iter(self.chunks),
        )

    @property
    def payloads(self):
        return [json.loads(r.content) for r in self.requests]


class FakeSearch:
    """Records requests and answers like the search API."""

    def __init__(self):
        self.requests = []
        self.status = 200
        self.results = [
            {"title": "Закон Ома", "markdown": "Сила тока прямо пропорциональна напряжению."},
        ]

    def handler(self, request):
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, json={"error": "search down"})
        return httpx.Response(200, json={"success": True, "data": self.results})


@pytest.fixture
def sse():
    """Expose the event-stream builder to tests."""
    return sse_body


@pytest.fixture
def settings():
    """Create test settings."""
    return Settings(
        _env_file=None,
        GATEWAY_API_KEY="gw-test-key",
        SEARCH_API_KEY="search-test-key",
        AUTH_JWT_SECRET=JWT_SECRET,
        LOG_LEVEL="WARNING",
        LOG_FORMAT="console",
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def search_api():
    return FakeSearch()


@pytest.fixture
def llm_service(settings, gateway):
    service = LLMService(
        api_key=settings.GATEWAY_API_KEY,
        model=settings.GATEWAY_MODEL,
        transport=httpx.MockTransport(gateway.handler),
    )
    yield service
    service.close()


@pytest.fixture
def search_client(settings, search_api):
    client = WebSearchClient(
        base_url=settings.SEARCH_BASE_URL,
        api_key=settings.SEARCH_API_KEY,
        cache_ttl=0,
        transport=httpx.MockTransport(search_api.handler),
    )
    yield client
    client.close()


@pytest.fixture
def app(settings, llm_service, search_client):
    """Create a Flask application instance wired to the fake upstreams."""
    app = create_app(settings, llm_service=llm_service, search_client=search_client)
    app.config["TESTING"] = True
    yield app


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()


@pytest.fixture
def token():
    return create_access_token("user-123", JWT_SECRET)


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}
