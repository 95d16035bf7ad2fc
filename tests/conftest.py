from __future__ import annotations

import json
import os
import re

# Keep test runs off disk and off the network-backed store.
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest
import pytest_asyncio

from deep_research.exceptions import ProviderTransientError
from deep_research.models.run import ResearchRun
from deep_research.research_core.models.interfaces import ExtractedPage, SearchHit
from deep_research.services.memory_store import InMemoryStore
from deep_research.services.streaming import RunEventBus


class ScriptedGenerator:
    """Returns queued responses in order; exceptions in the queue are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def generate(self, prompt: str, max_tokens: int | None = None) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise ProviderTransientError("llm", "no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FailingGenerator:
    def __init__(self):
        self.calls = 0

    async def generate(self, prompt: str, max_tokens: int | None = None) -> str:
        self.calls += 1
        raise ProviderTransientError("llm", "gateway unavailable")


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")[:40]


class FakeSearch:
    """Deterministic search: ``limit`` hits per query with urls derived from it."""

    name = "fake"

    def __init__(self, hits_for=None, fail_when=None):
        self.hits_for = hits_for
        self.fail_when = fail_when
        self.calls: list[str] = []
        self.domains: list[list[str] | None] = []

    async def search(
        self, query: str, limit: int, locale: str | None = None, domains: list[str] | None = None
    ) -> list[SearchHit]:
        self.calls.append(query)
        self.domains.append(domains)
        if self.fail_when and self.fail_when(query):
            raise ProviderTransientError("search", f"failed for {query}")
        if self.hits_for is not None:
            return self.hits_for(query, limit)
        slug = _slug(query)
        return [
            SearchHit(
                title=f"{query} result {i}",
                url=f"https://example.com/{slug}/{i}",
                snippet=f"Snippet {i} about {query}",
                rank=i,
            )
            for i in range(1, limit + 1)
        ]


class FakeExtract:
    name = "fake-extract"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[list[str]] = []

    async def extract(self, urls: list[str]) -> list[ExtractedPage]:
        self.calls.append(list(urls))
        if self.fail:
            raise ProviderTransientError("extract", "extractor down")
        return [ExtractedPage(url=url, content=f"Full text of {url}") for url in urls]


def plan_json(axis_count: int, **overrides) -> str:
    payload = {
        "reformulation": "Restated question",
        "objective": "Explain it",
        "scope": "Everything relevant",
        "axes": [
            {
                "id": i,
                "title": f"Axis {i}",
                "question": f"Sub-question {i}?",
                "keywords": [f"topic {i}", "details"],
                "priority": "high",
            }
            for i in range(1, axis_count + 1)
        ],
    }
    payload.update(overrides)
    return json.dumps(payload)


def verdict_json(score: int, sufficient: bool, incomplete: list[dict] | None = None) -> str:
    return json.dumps(
        {
            "coverage_score": score,
            "sufficient": sufficient,
            "incomplete_axes": incomplete or [],
            "justification": "test verdict",
        }
    )


FINDINGS = " ".join(["Utility-scale storage costs keep falling as cell prices drop [2]."] * 40)

REPORT_MARKDOWN = f"""# Solar Storage Outlook

## Executive Summary

Grid batteries are getting cheaper [1].

## Findings

{FINDINGS}
"""


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def bus():
    return RunEventBus()


@pytest_asyncio.fixture
async def run(store):
    return await store.create_run(ResearchRun(id="run-1", query="How cheap is grid storage?"))
