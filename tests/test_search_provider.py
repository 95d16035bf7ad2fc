from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from deep_research.exceptions import ProviderTransientError
from deep_research.research_core.models.interfaces import SearchHit
from deep_research.tools import search_provider, serper_search
from deep_research.tools.search_provider import WebSearchProvider

HIT = SearchHit(title="T", url="https://t.example", snippet="s", rank=1)


@pytest.mark.asyncio
async def test_search_provider_uses_tavily_when_configured():
    with patch("deep_research.tools.search_provider.settings") as mock_settings, patch(
        "deep_research.tools.search_provider.tavily_search.search", new=AsyncMock(return_value=[HIT])
    ):
        mock_settings.search_provider = "tavily"
        result = await search_provider.search("query", max_results=3)

    assert result.provider == "tavily"
    assert result.results == [HIT]


@pytest.mark.asyncio
async def test_tavily_search_uses_include_domains_for_allow_list():
    tavily = AsyncMock(return_value=[HIT])
    with patch("deep_research.tools.search_provider.settings") as mock_settings, patch(
        "deep_research.tools.search_provider.tavily_search.search", new=tavily
    ):
        mock_settings.search_provider = "tavily"
        await search_provider.search("solar storage", max_results=3, domains=["a.org"])

    tavily.assert_awaited_once_with(query="solar storage", max_results=3, include_domains=["a.org"])


@pytest.mark.asyncio
async def test_serper_search_puts_allow_list_in_query():
    serper = AsyncMock(return_value=[HIT])
    with patch("deep_research.tools.search_provider.settings") as mock_settings, patch(
        "deep_research.tools.search_provider.serper_search.search", new=serper
    ):
        mock_settings.search_provider = "serper"
        mock_settings.search_fallback_to_tavily = True
        result = await search_provider.search("solar storage", domains=["a.org", "b.com"])

    assert result.provider == "serper"
    assert serper.call_args.kwargs["query"] == "solar storage site:a.org OR site:b.com"


@pytest.mark.asyncio
async def test_serper_fallback_passes_allow_list_to_tavily():
    tavily = AsyncMock(return_value=[HIT])
    with patch("deep_research.tools.search_provider.settings") as mock_settings, patch(
        "deep_research.tools.search_provider.serper_search.search", new=AsyncMock(return_value=[])
    ), patch("deep_research.tools.search_provider.tavily_search.search", new=tavily):
        mock_settings.search_provider = "serper"
        mock_settings.search_fallback_to_tavily = True
        result = await search_provider.search("solar storage", max_results=3, domains=["a.org"])

    assert result.fallback_from == "serper"
    tavily.assert_awaited_once_with(query="solar storage", max_results=3, include_domains=["a.org"])


@pytest.mark.asyncio
async def test_serper_zero_results_fall_back_to_tavily():
    with patch("deep_research.tools.search_provider.settings") as mock_settings, patch(
        "deep_research.tools.search_provider.serper_search.search", new=AsyncMock(return_value=[])
    ), patch("deep_research.tools.search_provider.tavily_search.search", new=AsyncMock(return_value=[HIT])):
        mock_settings.search_provider = "serper"
        mock_settings.search_fallback_to_tavily = True
        result = await search_provider.search("query", max_results=3, locale="fr-FR")

    assert result.provider == "tavily"
    assert result.fallback_from == "serper"
    assert result.fallback_reason == "serper returned zero results"


@pytest.mark.asyncio
async def test_serper_error_raises_without_fallback():
    with patch("deep_research.tools.search_provider.settings") as mock_settings, patch(
        "deep_research.tools.search_provider.serper_search.search",
        new=AsyncMock(side_effect=RuntimeError("quota exceeded")),
    ):
        mock_settings.search_provider = "serper"
        mock_settings.search_fallback_to_tavily = False
        with pytest.raises(RuntimeError, match="quota"):
            await search_provider.search("query")


@pytest.mark.asyncio
async def test_search_provider_raises_when_provider_unsupported():
    with patch("deep_research.tools.search_provider.settings") as mock_settings:
        mock_settings.search_provider = "unknown-provider"
        with pytest.raises(ValueError):
            await search_provider.search("query")


@pytest.mark.asyncio
async def test_web_search_provider_wraps_failures():
    with patch(
        "deep_research.tools.search_provider.search", new=AsyncMock(side_effect=RuntimeError("boom"))
    ):
        with pytest.raises(ProviderTransientError, match="boom"):
            await WebSearchProvider(timeout_seconds=1).search("q", 3)


@pytest.mark.asyncio
async def test_web_search_provider_forwards_domains():
    inner = AsyncMock(return_value=search_provider.SearchResponse(results=[HIT], provider="tavily"))
    with patch("deep_research.tools.search_provider.search", new=inner):
        hits = await WebSearchProvider(timeout_seconds=1).search("q", 3, "fr-FR", ["a.org"])

    assert hits == [HIT]
    inner.assert_awaited_once_with("q", max_results=3, locale="fr-FR", domains=["a.org"])


@pytest.mark.asyncio
async def test_web_search_provider_enforces_deadline():
    async def slow_search(*args, **kwargs):
        await asyncio.sleep(1)

    with patch("deep_research.tools.search_provider.search", new=slow_search):
        with pytest.raises(ProviderTransientError, match="timed out"):
            await WebSearchProvider(timeout_seconds=0.01).search("q", 3)


@pytest.mark.asyncio
async def test_serper_maps_organic_results():
    payload = {
        "organic": [
            {"title": "First", "link": "https://one.example", "snippet": "one", "position": 1},
            {"title": "Second", "link": "https://two.example", "snippet": "two"},
        ]
    }
    response = MagicMock()
    response.json.return_value = payload
    http_client = MagicMock()
    http_client.post = AsyncMock(return_value=response)

    with patch("deep_research.tools.serper_search.settings") as mock_settings, patch(
        "deep_research.tools.serper_search.httpx.AsyncClient"
    ) as client_cls:
        mock_settings.serper_api_key = "key"
        mock_settings.serper_search_url = "https://serper.test/search"
        mock_settings.search_country = "us"
        mock_settings.search_language = "en"
        mock_settings.provider_timeout_seconds = 5
        client_cls.return_value.__aenter__.return_value = http_client

        hits = await serper_search.search("solar", max_results=5, country="fr", language="fr")

    body = http_client.post.call_args.kwargs["json"]
    assert body == {"q": "solar", "num": 5, "gl": "fr", "hl": "fr"}
    assert http_client.post.call_args.kwargs["headers"]["X-API-KEY"] == "key"
    assert [h.url for h in hits] == ["https://one.example", "https://two.example"]
    assert [h.rank for h in hits] == [1, 2]
    assert hits[0].relevance_score == pytest.approx(0.9)


@pytest.mark.asyncio
async def test_serper_requires_api_key():
    with patch("deep_research.tools.serper_search.settings") as mock_settings:
        mock_settings.serper_api_key = ""
        with pytest.raises(RuntimeError, match="SERPER_API_KEY"):
            await serper_search.search("q")
