from __future__ import annotations

import asyncio

from deep_research.config import settings
from deep_research.exceptions import ProviderTransientError
from deep_research.research_core.models.interfaces import ExtractedPage
from deep_research.tools import jina_reader, tavily_search, web_utils


async def extract(urls: list[str]) -> list[ExtractedPage]:
    provider = settings.extract_provider.lower().strip()
    if provider == "tavily":
        return await tavily_search.extract(urls)
    if provider == "jina":
        return await jina_reader.read_many(urls)
    raise ValueError(f"Unsupported EXTRACT_PROVIDER: {settings.extract_provider}")


class WebExtractProvider:
    """Batched full-text extraction, best effort.

    Content is truncated to ``extract_max_content_chars`` per page; pages the
    provider could not read are omitted from the result.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        max_content_chars: int | None = None,
    ):
        self.name = settings.extract_provider.lower().strip()
        self.timeout_seconds = timeout_seconds or settings.provider_timeout_seconds
        self.max_content_chars = max_content_chars or settings.extract_max_content_chars

    async def extract(self, urls: list[str]) -> list[ExtractedPage]:
        if not urls:
            return []
        try:
            pages = await asyncio.wait_for(extract(urls), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise ProviderTransientError(
                "extract", f"timed out after {self.timeout_seconds}s for {len(urls)} urls"
            ) from exc
        except ValueError:
            raise
        except Exception as exc:
            raise ProviderTransientError("extract", str(exc)) from exc

        return [
            ExtractedPage(url=page.url, content=web_utils.truncate(page.content, self.max_content_chars))
            for page in pages
        ]
