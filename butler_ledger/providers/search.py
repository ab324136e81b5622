"""Web search: Tavily with a DuckDuckGo instant-answer fallback."""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol
from urllib.parse import quote_plus

import httpx

from .base import HttpProvider

logger = logging.getLogger("butler.providers.search")

SNIPPET_LENGTH = 200
MAX_RESULTS = 5


class SearchProvider(Protocol):
    async def search(self, query: str) -> list[dict[str, str]]:
        ...


class DuckDuckGoSearchProvider(HttpProvider):
    """Free instant-answer API; used when no Tavily key is configured."""

    dependency = "DuckDuckGo"

    async def search(self, query: str) -> list[dict[str, str]]:
        data = await self._request(
            "GET",
            "/",
            params={"q": query, "format": "json", "no_html": "1"},
        )
        results: list[dict[str, str]] = []

        if data.get("AbstractText"):
            results.append({
                "title": data.get("Heading") or query,
                "url": data.get("AbstractURL") or "",
                "snippet": data["AbstractText"],
            })

        for topic in (data.get("RelatedTopics") or [])[:4]:
            text = topic.get("Text") if isinstance(topic, dict) else None
            if text:
                results.append({
                    "title": text.split(" - ")[0] or text[:50],
                    "url": topic.get("FirstURL") or "",
                    "snippet": text,
                })

        if not results:
            results.append({
                "title": f'Search results for "{query}"',
                "url": f"https://duckduckgo.com/?q={quote_plus(query)}",
                "snippet": f"Web search completed for: {query}.",
            })
        return results


class TavilySearchProvider(HttpProvider):
    """Tavily search API (basic depth, five results)."""

    dependency = "Tavily"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = "https://api.tavily.com",
        fallback: Optional[SearchProvider] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, timeout=timeout, client=client)
        self._api_key = api_key
        self._fallback = fallback

    @staticmethod
    def _to_result(item: dict[str, Any]) -> dict[str, str]:
        content = item.get("content") or ""
        return {
            "title": item.get("title") or "",
            "url": item.get("url") or "",
            "snippet": content[:SNIPPET_LENGTH] + "...",
        }

    async def search(self, query: str) -> list[dict[str, str]]:
        if self._api_key:
            data = await self._request(
                "POST",
                "/search",
                json={
                    "api_key": self._api_key,
                    "query": query,
                    "search_depth": "basic",
                    "max_results": MAX_RESULTS,
                },
            )
            results = data.get("results")
            if results:
                return [self._to_result(item) for item in results]
            logger.info("Tavily returned no results for %r", query)
            if self._fallback is None:
                return []
        elif self._fallback is None:
            raise self._unavailable("no search API key configured")
        return await self._fallback.search(query)
