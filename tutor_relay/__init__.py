"""Tutor Chat Relay — Flask Application Package.

This is the main application package. The `create_app()` factory function
initializes the Flask application with all configurations, middleware,
services, and blueprints.
"""
from __future__ import annotations

import structlog
from flask import Flask
from flask_cors import CORS

from tutor_relay.config import get_settings, Settings
from tutor_relay.utils.logger import setup_logging
from tutor_relay.middleware.request_id import init_request_id_middleware
from tutor_relay.middleware.error_handlers import register_error_handlers

# Headers the web client sends with every relay call
CORS_ALLOWED_HEADERS = [
    "authorization",
    "content-type",
    "x-client-info",
    "apikey",
    "x-request-id",
]


def create_app(
    settings: Settings | None = None,
    llm_service=None,
    search_client=None,
    rate_limiter=None,
) -> Flask:
    """Application factory pattern.

    Creates and configures the Flask application with:
    - Pydantic-based configuration loading
    - Structured logging (structlog)
    - Request ID middleware
    - Global error handlers
    - CORS configuration
    - Service initialization (gateway, search, rate limiter, relay)
    - Blueprint registration (health, chat)

    Args:
        settings: Settings to use instead of the cached environment settings.
        llm_service: Prebuilt LLMService (tests inject mock transports).
        search_client: Prebuilt WebSearchClient.
        rate_limiter: Prebuilt RateLimiter.

    Returns:
        Configured Flask application instance.
    """
    settings = settings or get_settings()

    # ── Logging (must be first so all subsequent logs are formatted) ──
    setup_logging(log_level=settings.LOG_LEVEL, log_format=settings.LOG_FORMAT)
    logger = structlog.get_logger(__name__)

    # ── Flask app ─────────────────────────────────────────────────────
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.SECRET_KEY
    app.config["FLASK_DEBUG"] = settings.FLASK_DEBUG

    # Store settings on app for access in blueprints
    app.config["SETTINGS"] = settings

    # ── Middleware ─────────────────────────────────────────────────────
    init_request_id_middleware(app)
    register_error_handlers(app)

    # ── CORS ──────────────────────────────────────────────────────────
    CORS(
        app,
        resources={
            r"/chat": {"origins": settings.cors_origins},
            r"/health": {"origins": settings.cors_origins},
        },
        allow_headers=CORS_ALLOWED_HEADERS,
        expose_headers=["X-Request-ID", "Retry-After"],
        # Literal "*" instead of echoing the caller's Origin
        send_wildcard=settings.cors_origins == "*",
    )

    # ── Services ──────────────────────────────────────────────────────
    _init_services(app, settings, llm_service, search_client, rate_limiter)

    # ── Blueprints ────────────────────────────────────────────────────
    from tutor_relay.routes.health import health_bp
    from tutor_relay.routes.chat import chat_bp
    app.register_blueprint(health_bp)
    app.register_blueprint(chat_bp)

    logger.info(
        "app_started",
        env=settings.FLASK_ENV,
        model=settings.GATEWAY_MODEL,
        gateway_configured=bool(settings.GATEWAY_API_KEY),
        web_search_enabled=bool(settings.SEARCH_API_KEY),
        log_level=settings.LOG_LEVEL,
    )

    return app


def _init_services(app: Flask, settings: Settings, llm_service, search_client, rate_limiter) -> None:
    """Initialize the gateway, search client, rate limiter, and chat relay.

    All services are stored on `app.config` for access via `current_app`.
    """
    from tutor_relay.api_clients.search_client import WebSearchClient
    from tutor_relay.services.chat_relay import ChatRelay
    from tutor_relay.services.context_augmenter import ContextAugmenter
    from tutor_relay.services.llm_service import LLMService
    from tutor_relay.services.rate_limiter import RateLimiter

    logger = structlog.get_logger(__name__)
    logger.info("initializing_services")

    if llm_service is None:
        llm_service = LLMService(
            api_key=settings.GATEWAY_API_KEY,
            model=settings.GATEWAY_MODEL,
            base_url=settings.GATEWAY_BASE_URL,
            timeout=settings.GATEWAY_TIMEOUT,
        )

    if search_client is None:
        search_client = WebSearchClient(
            base_url=settings.SEARCH_BASE_URL,
            api_key=settings.SEARCH_API_KEY,
            timeout=settings.SEARCH_TIMEOUT,
            max_attempts=settings.SEARCH_MAX_RETRIES,
            cache_ttl=settings.CACHE_TTL_SECONDS,
            cache_max_size=settings.CACHE_MAX_SIZE,
            lang=settings.SEARCH_LANG,
            country=settings.SEARCH_COUNTRY,
        )

    # One limiter per app instance; the table is not shared across processes
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            evict_after_seconds=settings.RATE_LIMIT_EVICT_AFTER_SECONDS,
        )

    augmenter = ContextAugmenter(
        search_client,
        result_limit=settings.SEARCH_RESULT_LIMIT,
        snippet_max_chars=settings.SEARCH_SNIPPET_MAX_CHARS,
        query_max_length=settings.SEARCH_QUERY_MAX_LENGTH,
    )

    relay = ChatRelay(
        llm_service,
        rate_limiter,
        augmenter,
        max_messages=settings.MAX_MESSAGES,
        max_message_length=settings.MAX_MESSAGE_LENGTH,
    )

    app.config["LLM_SERVICE"] = llm_service
    app.config["SEARCH_CLIENT"] = search_client
    app.config["RATE_LIMITER"] = rate_limiter
    app.config["CONTEXT_AUGMENTER"] = augmenter
    app.config["CHAT_RELAY"] = relay

    logger.info("services_initialized")
