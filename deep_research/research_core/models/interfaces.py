from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True)
class SearchHit:
    title: str
    url: str
    snippet: str
    rank: int  # 1-based position in the provider's ranking

    @property
    def relevance_score(self) -> float:
        if self.rank <= 0:
            return 0.5
        return max(0.0, round(1.0 - self.rank / 10.0, 4))


@dataclass(slots=True)
class ExtractedPage:
    url: str
    content: str


class SearchProvider(Protocol):
    name: str

    async def search(
        self, query: str, limit: int, locale: str | None = None, domains: list[str] | None = None
    ) -> list[SearchHit]:
        ...


class ExtractProvider(Protocol):
    name: str

    async def extract(self, urls: list[str]) -> list[ExtractedPage]:
        ...


class TextGenerator(Protocol):
    async def generate(self, prompt: str, max_tokens: int | None = None) -> str:
        ...
