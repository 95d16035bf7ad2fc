from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient

from deep_research.config import settings
from deep_research.research_core.models.interfaces import ExtractedPage, SearchHit


def _client() -> AsyncTavilyClient:
    if not settings.tavily_api_key:
        raise RuntimeError("TAVILY_API_KEY is not configured")
    return AsyncTavilyClient(api_key=settings.tavily_api_key)


async def search(
    query: str,
    *,
    max_results: int = 10,
    include_domains: list[str] | None = None,
) -> list[SearchHit]:
    """Execute a Tavily web search; rank follows Tavily's ordering.

    ``include_domains`` restricts results natively, so the query stays bare.
    """
    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": "advanced",
        "max_results": max_results,
    }
    if include_domains:
        kwargs["include_domains"] = include_domains

    response = await _client().search(**kwargs)

    return [
        SearchHit(
            title=r.get("title", "") or "",
            url=r.get("url", "") or "",
            snippet=r.get("content", "") or "",
            rank=idx + 1,
        )
        for idx, r in enumerate(response.get("results", []))
    ]


async def extract(urls: list[str]) -> list[ExtractedPage]:
    """Fetch full page text for a batch of urls; failed urls are simply absent."""
    if not urls:
        return []
    response = await _client().extract(urls=urls)
    pages: list[ExtractedPage] = []
    for r in response.get("results", []) or []:
        url = r.get("url")
        content = r.get("raw_content") or ""
        if isinstance(url, str) and url and content:
            pages.append(ExtractedPage(url=url, content=content))
    return pages
