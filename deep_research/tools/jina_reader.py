from __future__ import annotations

import asyncio

import httpx

from deep_research.config import settings
from deep_research.research_core.models.interfaces import ExtractedPage

JINA_READER_URL = "https://r.jina.ai/"


async def read(url: str) -> ExtractedPage:
    """Fetch one page as markdown through the Jina Reader API.

    API: GET https://r.jina.ai/<url>
    Headers:
        - Authorization: Bearer <api_key>
        - X-Return-Format: markdown
    """
    if not settings.jina_api_key:
        raise RuntimeError("JINA_API_KEY is not configured")

    async with httpx.AsyncClient(timeout=settings.provider_timeout_seconds) as client:
        response = await client.get(
            f"{JINA_READER_URL}{url}",
            headers={
                "Authorization": f"Bearer {settings.jina_api_key}",
                "X-Return-Format": "markdown",
            },
        )
        response.raise_for_status()
        return ExtractedPage(url=url, content=response.text)


async def read_many(urls: list[str]) -> list[ExtractedPage]:
    """Read several pages concurrently; failed pages are dropped."""
    results = await asyncio.gather(*(read(url) for url in urls), return_exceptions=True)
    return [r for r in results if isinstance(r, ExtractedPage) and r.content.strip()]
