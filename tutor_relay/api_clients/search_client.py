"""Client for a Firecrawl-compatible web search API.

    POST /search
    {"query": "...", "limit": 3, "lang": "ru", "country": "ru",
     "scrapeOptions": {"formats": ["markdown"]}}

    → {"data": [{"title": "...", "markdown": "...", "description": "..."}]}

Results come back raw; sanitizing them is the context augmenter's job.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from tutor_relay.api_clients.base_client import BaseAPIClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SearchResult:
    """One raw search hit. Any field may be empty."""
    title: str = ""
    markdown: str = ""
    description: str = ""
    url: str = ""

    @classmethod
    def from_api(cls, item: Any) -> "SearchResult | None":
        if not isinstance(item, dict):
            return None

        def text(key: str) -> str:
            value = item.get(key)
            return value if isinstance(value, str) else ""

        metadata = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
        return cls(
            title=text("title") or str(metadata.get("title") or ""),
            markdown=text("markdown"),
            description=text("description"),
            url=text("url"),
        )


class WebSearchClient(BaseAPIClient):
    """Web search with content extraction.

    Args:
        lang: Result language.
        country: Result country.
        **kwargs: Passed to BaseAPIClient (base_url, api_key, timeout, ...).
    """

    def __init__(self, lang: str = "ru", country: str = "ru", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._lang = lang
        self._country = country

    def search(self, query: str, limit: int = 3) -> list[SearchResult]:
        """Run a search and return at most ``limit`` results.

        Raises:
            APIClientError: The API failed or could not be reached.
        """
        data = self.post(
            "/search",
            {
                "query": query,
                "limit": limit,
                "lang": self._lang,
                "country": self._country,
                "scrapeOptions": {"formats": ["markdown"]},
            },
        )
        raw = data.get("data") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            logger.info("web_search_empty", query_length=len(query))
            return []

        results = [r for r in (SearchResult.from_api(item) for item in raw[:limit]) if r is not None]
        logger.info("web_search_results", count=len(results))
        return results
