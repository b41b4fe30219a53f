"""Custom exception hierarchy for the tutor chat relay.

All application-specific exceptions inherit from TutorRelayError,
enabling uniform error handling in the global error handlers.

Hierarchy:
    TutorRelayError (base)
    ├── AuthenticationError         — Missing / unresolvable caller identity
    ├── InputValidationError        — Malformed chat request body
    ├── RateLimitExceeded           — Admission control denied the turn
    ├── ConfigurationError          — Missing credentials on the server side
    ├── UpstreamUnavailable         — Completion gateway failures
    │   ├── UpstreamRateLimited     — Gateway returned 429
    │   ├── UpstreamPaymentRequired — Gateway returned 402
    │   └── APIClientError          — Web search failures (never surfaced)
    └── FramingError                — Unparseable event-stream line (internal)
"""
from __future__ import annotations


class TutorRelayError(Exception):
    """Base exception for the relay.

    Attributes:
        message: Caller-safe message, rendered as ``{"error": message}``.
        status_code: HTTP status used at the boundary.
        code: Short machine-readable error kind.
    """

    code = "internal_error"

    def __init__(self, message: str, status_code: int = 500, code: str | None = None) -> None:
        self.message = message
        self.status_code = status_code
        if code is not None:
            self.code = code
        super().__init__(self.message)


class AuthenticationError(TutorRelayError):
    """Raised when the bearer token is missing or cannot be resolved."""

    code = "unauthenticated"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, status_code=401)


class InputValidationError(TutorRelayError):
    """Raised when the chat request body fails validation."""

    code = "invalid_request"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)


class RateLimitExceeded(TutorRelayError):
    """Raised when the per-identity admission window is exhausted."""

    code = "rate_limited"

    def __init__(self, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(
            "Слишком много запросов. Подождите немного и попробуйте снова.",
            status_code=429,
        )


class ConfigurationError(TutorRelayError):
    """Raised when a required credential is not configured."""

    code = "misconfigured"

    def __init__(self, setting: str) -> None:
        self.setting = setting
        super().__init__("Сервис не настроен", status_code=500)


# ── Upstream Errors ───────────────────────────────────────────────────

class UpstreamUnavailable(TutorRelayError):
    """Raised when the completion gateway fails or cannot be reached."""

    code = "upstream_unavailable"

    def __init__(
        self,
        message: str = "Ошибка AI сервиса",
        status_code: int = 502,
        upstream_status: int | None = None,
    ) -> None:
        self.upstream_status = upstream_status
        super().__init__(message, status_code)


class UpstreamRateLimited(UpstreamUnavailable):
    """Raised when the completion gateway returns 429."""

    code = "upstream_rate_limited"

    def __init__(self, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(
            message="AI сервис перегружен. Повторите запрос позже.",
            status_code=429,
            upstream_status=429,
        )


class UpstreamPaymentRequired(UpstreamUnavailable):
    """Raised when the completion gateway returns 402."""

    code = "service_temporarily_unavailable"

    def __init__(self) -> None:
        super().__init__(
            message="Сервис временно недоступен.",
            status_code=503,
            upstream_status=402,
        )


class APIClientError(UpstreamUnavailable):
    """Raised when an auxiliary API (web search) fails.

    The context augmenter contains these; they never reach the caller.
    """

    code = "api_client_error"

    def __init__(
        self,
        message: str,
        client_name: str = "unknown",
        upstream_status: int | None = None,
    ) -> None:
        self.client_name = client_name
        super().__init__(message, status_code=502, upstream_status=upstream_status)


class FramingError(TutorRelayError):
    """Raised when an event-stream ``data:`` line is not complete JSON."""

    code = "framing_error"

    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__("Incomplete event-stream line", status_code=502)
