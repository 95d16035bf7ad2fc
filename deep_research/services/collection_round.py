from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from loguru import logger

from deep_research.config import settings
from deep_research.models.research_plan import Axis
from deep_research.models.run import EvidenceSource, ProgressStage
from deep_research.research_core.evidence.store import EvidenceStore
from deep_research.research_core.models.interfaces import (
    ExtractProvider,
    SearchHit,
    SearchProvider,
)
from deep_research.services.progress import ProgressSink
from deep_research.tools import web_utils


@dataclass(slots=True)
class AxisSearchResult:
    axis: Axis
    query: str
    hits: list[SearchHit] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True)
class RoundResult:
    iteration: int
    evidence_count: int
    new_sources: list[EvidenceSource] = field(default_factory=list)
    axes_with_new_sources: set[str] = field(default_factory=set)
    failed_axes: list[str] = field(default_factory=list)
    extracted_urls: list[str] = field(default_factory=list)


def iteration_window(iteration: int, max_iterations: int) -> tuple[float, float]:
    """Progress band of one iteration inside the 10-80% collecting range."""
    total = max(max_iterations, 1)
    start = 10 + ((iteration - 1) / total) * 70
    end = 10 + (iteration / total) * 70
    return start, end


class CollectionRound:
    """One search + extraction pass over the pending axes.

    Searches fan out concurrently, one per axis, and the round waits for all
    of them. A failed search counts as zero results and a failed extraction
    leaves the snippets in place; only store failures escape.
    """

    def __init__(
        self,
        search_provider: SearchProvider,
        extract_provider: ExtractProvider,
        evidence: EvidenceStore,
        progress: ProgressSink,
        *,
        extract_max_urls: int | None = None,
        locale: str | None = None,
    ):
        self.search_provider = search_provider
        self.extract_provider = extract_provider
        self.evidence = evidence
        self.progress = progress
        self.extract_max_urls = max(int(extract_max_urls or settings.extract_max_urls), 1)
        self.locale = locale

    async def run(
        self,
        iteration: int,
        pending_axes: list[Axis],
        *,
        results_per_axis: int,
        max_iterations: int,
        domain_allow_list: list[str] | None = None,
    ) -> RoundResult:
        start, end = iteration_window(iteration, max_iterations)
        span = end - start

        await self.progress.update(
            ProgressStage.COLLECTING,
            start,
            f"Iteration {iteration}/{max_iterations}: collecting on {len(pending_axes)} axes...",
        )

        searches = await asyncio.gather(
            *(
                self._search_axis(axis, results_per_axis, domain_allow_list)
                for axis in pending_axes
            )
        )

        result = RoundResult(iteration=iteration, evidence_count=len(self.evidence))
        for search in searches:
            if search.error is not None:
                result.failed_axes.append(search.axis.id)
            for hit in search.hits:
                if not hit.url:
                    continue
                source = EvidenceSource(
                    run_id=self.evidence.run_id,
                    title=hit.title,
                    url=hit.url,
                    snippet=hit.snippet,
                    relevance_score=hit.relevance_score,
                    axe_id=search.axis.id,
                    iteration=iteration,
                    provider=self.search_provider.name,
                )
                if await self.evidence.append(source):
                    result.new_sources.append(source)
                    result.axes_with_new_sources.add(search.axis.id)

        result.evidence_count = len(self.evidence)
        await self.progress.update(
            ProgressStage.COLLECTING,
            start + span * 0.3,
            f"{result.evidence_count} sources found. Extracting content...",
        )

        result.extracted_urls = await self._extract(result.new_sources, results_per_axis)

        await self.progress.update(
            ProgressStage.COLLECTING,
            start + span * 0.6,
            "Analyzing coverage...",
        )
        logger.info(
            f"[{self.evidence.run_id}] iteration {iteration}: {len(result.new_sources)} new sources, "
            f"{len(result.extracted_urls)} extracted, {len(result.failed_axes)} failed searches"
        )
        return result

    async def _search_axis(
        self,
        axis: Axis,
        limit: int,
        domain_allow_list: list[str] | None,
    ) -> AxisSearchResult:
        query = axis.search_terms()
        try:
            hits = await self.search_provider.search(
                query, limit, self.locale, domain_allow_list or None
            )
        except Exception as exc:
            logger.warning(f"[{self.evidence.run_id}] search failed for axis {axis.id}: {exc}")
            return AxisSearchResult(axis=axis, query=query, error=str(exc))
        return AxisSearchResult(axis=axis, query=query, hits=list(hits)[:limit])

    async def _extract(self, new_sources: list[EvidenceSource], results_per_axis: int) -> list[str]:
        cap = min(results_per_axis, self.extract_max_urls)
        urls = [s.url for s in new_sources if web_utils.is_valid_url(s.url)][:cap]
        if not urls:
            return []

        try:
            pages = await self.extract_provider.extract(urls)
        except Exception as exc:
            logger.warning(f"[{self.evidence.run_id}] extraction failed for {len(urls)} urls: {exc}")
            return []

        requested = set(urls)
        extracted: list[str] = []
        for page in pages:
            if page.url not in requested or not page.content.strip():
                continue
            await self.evidence.attach_content(page.url, page.content)
            extracted.append(page.url)
        return extracted
