"""Structured logging configuration using structlog.

Provides centralized logging setup with:
- JSON output in production, colored console output in development
- Automatic request_id / identity binding via contextvars
- Redaction of fields that may carry secrets or chat text

Chat content and bearer tokens are never meant to reach the logger; events
carry lengths and counts only. ``redact_sensitive`` is the backstop for a
field passed by mistake.

Usage:
    from tutor_relay.utils.logger import setup_logging

    setup_logging(log_level="INFO", log_format="json")

    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("relay_started", messages_count=3)
"""
from __future__ import annotations

import logging
from typing import Any

import structlog

SENSITIVE_KEYS = frozenset({"authorization", "token", "api_key", "content", "messages", "system_prompt"})
REDACTED = "[redacted]"


def redact_sensitive(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor: mask values of keys listed in SENSITIVE_KEYS."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog for the entire application.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        log_format: 'json' for production, 'console' for dev.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,  # request_id, identity
        redact_sensitive,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        # Russian text stays readable in the log stream
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=level)
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
