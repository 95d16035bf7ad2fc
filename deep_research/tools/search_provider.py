from __future__ import annotations

import asyncio
from dataclasses import dataclass

from loguru import logger

from deep_research.config import settings
from deep_research.exceptions import ProviderTransientError
from deep_research.research_core.models.interfaces import SearchHit
from deep_research.tools import serper_search, tavily_search, web_utils


@dataclass
class SearchResponse:
    results: list[SearchHit]
    provider: str
    fallback_from: str | None = None
    fallback_reason: str | None = None


async def search(
    query: str,
    *,
    max_results: int = 10,
    locale: str | None = None,
    domains: list[str] | None = None,
) -> SearchResponse:
    """Run one search through the configured provider.

    Serper only understands the allow-list as ``site:`` operators in the
    query; Tavily takes it as ``include_domains`` next to the bare query.
    """
    provider = settings.search_provider.lower().strip()
    use_fallback = settings.search_fallback_to_tavily
    language, country = web_utils.split_locale(locale)
    include_domains = domains or None

    if provider == "tavily":
        results = await tavily_search.search(
            query=query, max_results=max_results, include_domains=include_domains
        )
        return SearchResponse(results=results, provider="tavily")

    if provider == "serper":
        try:
            results = await serper_search.search(
                query=web_utils.with_site_filters(query, domains),
                max_results=max_results,
                country=country,
                language=language,
            )
            if results or not use_fallback:
                return SearchResponse(results=results, provider="serper")
            reason = "serper returned zero results"
        except Exception as e:
            if not use_fallback:
                raise
            reason = str(e)

        fallback_results = await tavily_search.search(
            query=query, max_results=max_results, include_domains=include_domains
        )
        return SearchResponse(
            results=fallback_results,
            provider="tavily",
            fallback_from="serper",
            fallback_reason=reason,
        )

    raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")


class WebSearchProvider:
    """Search capability backed by the configured provider chain.

    Every call runs under ``provider_timeout_seconds``; any failure surfaces
    as ``ProviderTransientError`` so callers handle a single error type.
    """

    def __init__(self, *, timeout_seconds: float | None = None):
        self.name = settings.search_provider.lower().strip()
        self.timeout_seconds = timeout_seconds or settings.provider_timeout_seconds

    async def search(
        self, query: str, limit: int, locale: str | None = None, domains: list[str] | None = None
    ) -> list[SearchHit]:
        try:
            response = await asyncio.wait_for(
                search(query, max_results=limit, locale=locale, domains=domains),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderTransientError(
                "search", f"timed out after {self.timeout_seconds}s for '{query[:80]}'"
            ) from exc
        except ValueError:
            raise
        except Exception as exc:
            raise ProviderTransientError("search", str(exc)) from exc

        if response.fallback_from:
            logger.warning(
                f"Search fell back from {response.fallback_from} to {response.provider}: "
                f"{response.fallback_reason}"
            )
        return response.results
