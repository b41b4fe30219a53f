"""Base JSON-over-HTTP API client with retry, a time budget, caching, and structured logging.

Auxiliary APIs (web search) inherit from this class. They sit on the
critical path of a chat turn, so unlike a typical client the whole call,
retries included, is bounded by ``timeout`` seconds.

Features:
- Persistent connection pooling via httpx.Client
- Optional retry with short linear backoff (429, 5xx, transport errors)
- Overall time budget across attempts
- TTL response caching (via tutor_relay.utils.cache.TTLCache)
- Structured logging for every request/response
- Every failure mapped to APIClientError
"""
from __future__ import annotations

import json
import time
from typing import Any

import httpx
import structlog

from tutor_relay.utils.cache import TTLCache
from tutor_relay.utils.exceptions import APIClientError

logger = structlog.get_logger(__name__)

# HTTP status codes that trigger automatic retry
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

RETRY_BACKOFF_SECONDS = 0.25


class BaseAPIClient:
    """Base class for auxiliary API clients.

    Args:
        base_url: The API's base URL (no trailing slash).
        api_key: Bearer key; an empty key leaves the client unconfigured.
        timeout: Time budget in seconds for one logical call, retries included.
        max_attempts: Number of attempts (1 = no retry).
        cache_ttl: Cache time-to-live in seconds (0 disables caching).
        cache_max_size: Maximum number of cached entries.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        max_attempts: int = 1,
        cache_ttl: int = 300,
        cache_max_size: int = 256,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._client_name = self.__class__.__name__

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "TutorRelay/1.0",
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 3.0)),
            headers=headers,
            transport=transport,
        )

        self._cache = TTLCache(ttl_seconds=cache_ttl, max_size=cache_max_size)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def close(self) -> None:
        """Close the underlying HTTP client and release connections."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ── Public API ────────────────────────────────────────────────────

    def post(self, endpoint: str, payload: dict[str, Any], use_cache: bool = True) -> Any:
        """Make a cached POST request with a JSON body.

        Args:
            endpoint: API endpoint path (e.g., "/search").
            payload: JSON body.
            use_cache: Whether to use the response cache.

        Returns:
            Parsed JSON response.

        Raises:
            APIClientError: On any HTTP, transport, timeout, or decoding failure.
        """
        cache_key = TTLCache.make_key(
            f"{self._client_name}:POST:{endpoint}",
            body=json.dumps(payload, sort_keys=True, ensure_ascii=False),
        )
        if use_cache:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug("cache_hit", client=self._client_name, endpoint=endpoint)
                return cached

        result = self._request_with_retry("POST", endpoint, payload)

        if use_cache:
            self._cache.set(cache_key, result)
        return result

    # ── Internal Methods ──────────────────────────────────────────────

    def _request_with_retry(self, method: str, endpoint: str, payload: dict[str, Any]) -> Any:
        """Execute an HTTP request, retrying while attempts and budget remain.

        Each attempt gets only what is left of the budget, and the body is
        read chunk by chunk so a server that trickles bytes cannot hold the
        call past the deadline.
        """
        deadline = time.monotonic() + self._timeout
        last_error = "no attempt made"
        last_status: int | None = None

        for attempt in range(1, self._max_attempts + 1):
            logger.info(
                "api_request",
                client=self._client_name,
                method=method,
                endpoint=endpoint,
                attempt=attempt,
            )
            start = time.monotonic()
            remaining = max(deadline - start, 0.001)
            try:
                with self._client.stream(
                    method,
                    endpoint,
                    json=payload,
                    timeout=httpx.Timeout(remaining, connect=min(remaining, 3.0)),
                ) as response:
                    body = self._read_body(response, deadline) if response.is_success else b""
            except httpx.TimeoutException:
                last_error = f"timed out after {self._timeout}s"
                last_status = None
            except httpx.HTTPError as e:
                last_error = f"{type(e).__name__}: {e}"
                last_status = None
            else:
                logger.info(
                    "api_response",
                    client=self._client_name,
                    endpoint=endpoint,
                    status=response.status_code,
                    duration_ms=round((time.monotonic() - start) * 1000),
                )
                if response.is_success:
                    try:
                        return json.loads(body)
                    except ValueError as e:
                        raise APIClientError(
                            message=f"{self._client_name}: invalid JSON from {endpoint}",
                            client_name=self._client_name,
                            upstream_status=response.status_code,
                        ) from e

                last_error = f"HTTP {response.status_code}"
                last_status = response.status_code
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    break

            backoff = RETRY_BACKOFF_SECONDS * attempt
            if attempt < self._max_attempts and time.monotonic() + backoff < deadline:
                logger.warning(
                    "api_retry",
                    client=self._client_name,
                    endpoint=endpoint,
                    error=last_error,
                    backoff=backoff,
                    attempt=attempt,
                )
                time.sleep(backoff)
                continue
            break

        raise APIClientError(
            message=f"{self._client_name}: {last_error} for {endpoint}",
            client_name=self._client_name,
            upstream_status=last_status,
        )

    @staticmethod
    def _read_body(response: httpx.Response, deadline: float) -> bytes:
        """Collect the response body, giving up once ``deadline`` passes."""
        body = bytearray()
        for chunk in response.iter_bytes():
            body.extend(chunk)
            if time.monotonic() > deadline:
                raise httpx.ReadTimeout("response body exceeded the time budget", request=response.request)
        return bytes(body)
