from __future__ import annotations

from typing import Any

import httpx

from deep_research.config import settings
from deep_research.research_core.models.interfaces import SearchHit


async def search(
    query: str,
    *,
    max_results: int = 10,
    country: str | None = None,
    language: str | None = None,
) -> list[SearchHit]:
    """Execute a Serper (Google) web search and normalize organic results."""
    if not settings.serper_api_key:
        raise RuntimeError("SERPER_API_KEY is not configured")

    body: dict[str, Any] = {
        "q": query,
        "num": max_results,
        "gl": country or settings.search_country,
        "hl": language or settings.search_language,
    }

    async with httpx.AsyncClient(timeout=settings.provider_timeout_seconds) as client:
        response = await client.post(
            settings.serper_search_url,
            json=body,
            headers={
                "X-API-KEY": settings.serper_api_key,
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()
        payload = response.json()

    organic = payload.get("organic", []) or []
    hits: list[SearchHit] = []
    for idx, item in enumerate(organic[:max_results]):
        position = item.get("position")
        hits.append(
            SearchHit(
                title=item.get("title", "") or "",
                url=item.get("link", "") or "",
                snippet=item.get("snippet", "") or "",
                rank=int(position) if isinstance(position, (int, float)) else idx + 1,
            )
        )
    return hits
