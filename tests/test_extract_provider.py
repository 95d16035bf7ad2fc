from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from deep_research.exceptions import ProviderTransientError
from deep_research.research_core.models.interfaces import ExtractedPage
from deep_research.tools import extract_provider, tavily_search
from deep_research.tools.extract_provider import WebExtractProvider


@pytest.mark.asyncio
async def test_extract_dispatches_to_jina():
    pages = [ExtractedPage(url="https://a.example", content="text")]
    with patch("deep_research.tools.extract_provider.settings") as mock_settings, patch(
        "deep_research.tools.extract_provider.jina_reader.read_many", new=AsyncMock(return_value=pages)
    ) as read_many:
        mock_settings.extract_provider = "jina"
        result = await extract_provider.extract(["https://a.example"])

    read_many.assert_awaited_once_with(["https://a.example"])
    assert result == pages


@pytest.mark.asyncio
async def test_extract_raises_when_provider_unsupported():
    with patch("deep_research.tools.extract_provider.settings") as mock_settings:
        mock_settings.extract_provider = "crawler9000"
        with pytest.raises(ValueError):
            await extract_provider.extract(["https://a.example"])


@pytest.mark.asyncio
async def test_web_extract_provider_truncates_content():
    pages = [ExtractedPage(url="https://a.example", content="x" * 50)]
    with patch("deep_research.tools.extract_provider.extract", new=AsyncMock(return_value=pages)):
        result = await WebExtractProvider(max_content_chars=10).extract(["https://a.example"])

    assert result[0].content == "x" * 10


@pytest.mark.asyncio
async def test_web_extract_provider_wraps_failures():
    with patch(
        "deep_research.tools.extract_provider.extract", new=AsyncMock(side_effect=RuntimeError("403"))
    ):
        with pytest.raises(ProviderTransientError):
            await WebExtractProvider().extract(["https://a.example"])


@pytest.mark.asyncio
async def test_web_extract_provider_skips_empty_batch():
    with patch("deep_research.tools.extract_provider.extract", new=AsyncMock()) as extract:
        assert await WebExtractProvider().extract([]) == []
    extract.assert_not_awaited()


@pytest.mark.asyncio
async def test_tavily_extract_keeps_pages_with_content():
    fake_client = AsyncMock()
    fake_client.extract.return_value = {
        "results": [
            {"url": "https://a.example", "raw_content": "body"},
            {"url": "https://b.example", "raw_content": ""},
        ],
        "failed_results": [{"url": "https://c.example"}],
    }
    with patch("deep_research.tools.tavily_search._client", return_value=fake_client):
        pages = await tavily_search.extract(["https://a.example", "https://b.example", "https://c.example"])

    assert pages == [ExtractedPage(url="https://a.example", content="body")]
