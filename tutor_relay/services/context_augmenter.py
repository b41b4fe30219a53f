"""Context augmenter — optional web context for factual questions.

Decides with a fixed keyword list whether the newest user message asks for
something factual (a formula, a date, a capital, ...). If so, it runs a web
search and turns the hits into a sanitized block appended to the system
prompt. Search is best effort: when it is not configured or fails, the
turn goes ahead without context.

Usage:
    augmenter = ContextAugmenter(search_client)
    suffix = augmenter.build_context("Что такое фотосинтез?", "Биология")
    system_prompt = instruction + suffix
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import structlog

from tutor_relay.api_clients.search_client import SearchResult, WebSearchClient
from tutor_relay.prompts.templates import (
    SEARCH_QUERY_TEMPLATE,
    SEARCH_TRIGGERS,
    SNIPPET_SEPARATOR,
    WEB_CONTEXT_MARKER,
)
from tutor_relay.utils.exceptions import APIClientError
from tutor_relay.utils.sanitizer import sanitize_text, sanitize_web_content

logger = structlog.get_logger(__name__)

MAX_TITLE_LENGTH = 200
MAX_SUBJECT_QUERY_LENGTH = 100


@dataclass(frozen=True)
class WebContextSnippet:
    """Sanitized title + excerpt of one search hit."""
    title: str
    content: str

    def render(self) -> str:
        return f"[{self.title}]\n{self.content}"


class ContextAugmenter:
    """Builds the optional web-context suffix of the system prompt.

    Args:
        search_client: Search API client; None disables augmentation.
        result_limit: Max search results folded into the prompt.
        snippet_max_chars: Max chars kept from each result's content.
        query_max_length: Max chars of the user message sent as the query.
        triggers: Lower-case trigger substrings.
    """

    def __init__(
        self,
        search_client: WebSearchClient | None,
        result_limit: int = 3,
        snippet_max_chars: int = 800,
        query_max_length: int = 200,
        triggers: Iterable[str] = SEARCH_TRIGGERS,
    ) -> None:
        self._client = search_client
        self._limit = result_limit
        self._snippet_max_chars = snippet_max_chars
        self._query_max_length = query_max_length
        self._triggers = tuple(t.lower() for t in triggers)

    def should_search(self, message: str) -> bool:
        """True if any trigger is a substring of the lower-cased message."""
        lowered = message.lower()
        return any(trigger in lowered for trigger in self._triggers)

    def build_context(self, message: str, subject: str) -> str:
        """Return the prompt suffix for this turn (possibly empty)."""
        if not self.should_search(message):
            return ""

        if self._client is None or not self._client.configured:
            logger.warning("web_search_skipped", reason="not_configured")
            return ""

        query = SEARCH_QUERY_TEMPLATE.format(
            subject=sanitize_text(subject, MAX_SUBJECT_QUERY_LENGTH),
            query=sanitize_text(message, self._query_max_length),
        ).strip()
        logger.info("web_search_triggered", query_length=len(query))

        try:
            results = self._client.search(query, limit=self._limit)
        except APIClientError as e:
            logger.warning(
                "web_search_failed",
                error=e.message,
                upstream_status=e.upstream_status,
            )
            return ""

        snippets = self.shape_results(results)
        if not snippets:
            return ""

        logger.info("web_context_attached", snippets=len(snippets))
        return WEB_CONTEXT_MARKER + SNIPPET_SEPARATOR.join(s.render() for s in snippets)

    def shape_results(self, results: Iterable[SearchResult]) -> list[WebContextSnippet]:
        """Sanitize and bound up to ``result_limit`` results.

        Content is cut to ``snippet_max_chars`` before cleaning as well as
        after, so a huge page never goes through the regexes in full.
        """
        snippets: list[WebContextSnippet] = []
        for result in results:
            if len(snippets) >= self._limit:
                break
            raw = result.markdown[: self._snippet_max_chars * 2] if result.markdown else result.description
            content = sanitize_web_content(raw, self._snippet_max_chars)
            title = sanitize_web_content(result.title, MAX_TITLE_LENGTH)
            if not content and not title:
                continue
            snippets.append(WebContextSnippet(title=title, content=content))
        return snippets
