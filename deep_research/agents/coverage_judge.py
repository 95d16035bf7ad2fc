"""Coverage judge: decides whether collected evidence answers the plan."""

from __future__ import annotations

from loguru import logger

from deep_research.models.coverage import CoverageVerdict
from deep_research.models.research_plan import Axis, AxisPriority
from deep_research.models.run import EvidenceSource
from deep_research.research_core.models.interfaces import TextGenerator
from deep_research.services.prompt_store import render_prompt
from deep_research.services.structured_output import parse_structured
from deep_research.tools import web_utils

_SNIPPET_CHARS = 300


def render_axes(axes: list[Axis]) -> str:
    return "\n".join(f"- [{axis.id}] {axis.title or axis.question}: {axis.question}" for axis in axes)


def render_sources(sources: list[EvidenceSource]) -> str:
    if not sources:
        return "(no sources collected)"
    lines = []
    for index, source in enumerate(sources, start=1):
        snippet = web_utils.truncate(" ".join((source.snippet or "").split()), _SNIPPET_CHARS)
        lines.append(f"[{index}] {source.title} - {snippet}")
    return "\n".join(lines)


class CoverageJudge:
    """Scores coverage 0-100 and names the axes still worth searching.

    Fails open: any generation or parsing problem yields a neutral
    ``sufficient`` verdict so the pipeline moves on to synthesis.
    """

    def __init__(self, generator: TextGenerator, *, max_tokens: int | None = None):
        self.generator = generator
        self.max_tokens = max_tokens

    async def evaluate(
        self,
        query: str,
        axes: list[Axis],
        sources: list[EvidenceSource],
    ) -> CoverageVerdict:
        prompt = render_prompt(
            "judge.prompt",
            query=query,
            axes=render_axes(axes),
            sources=render_sources(sources),
        )
        try:
            raw = await self.generator.generate(prompt, max_tokens=self.max_tokens)
            verdict = parse_structured(raw, CoverageVerdict)
        except Exception as exc:
            logger.warning(f"Coverage judge failed open: {exc}")
            return CoverageVerdict.fail_open(f"Coverage could not be evaluated: {exc}")

        logger.info(
            f"Coverage {verdict.coverage_score}/100, sufficient={verdict.sufficient}, "
            f"{len(verdict.incomplete_axes)} incomplete axes"
        )
        return verdict

    @staticmethod
    def next_axes(verdict: CoverageVerdict, known_axes: dict[str, Axis] | None = None) -> list[Axis]:
        """Follow-up axes for the incomplete entries of ``verdict``.

        Ids are kept so new evidence stays attributed to the original axis.
        Entries with neither a gap description nor new queries are skipped.
        """
        known_axes = known_axes or {}
        follow_ups: list[Axis] = []
        seen: set[tuple[str, tuple[str, ...]]] = set()
        for entry in verdict.incomplete_axes:
            gap = entry.gap_description.strip()
            keywords = entry.new_queries or ([gap] if gap else [])
            if not keywords:
                continue
            key = (entry.axis_id, tuple(keywords))
            if key in seen:
                continue
            seen.add(key)

            original = known_axes.get(entry.axis_id)
            title = f"{original.title} (follow-up)" if original else f"Follow-up on axis {entry.axis_id}"
            follow_ups.append(
                Axis(
                    id=entry.axis_id,
                    title=title,
                    question=gap or (original.question if original else keywords[0]),
                    keywords=keywords,
                    priority=AxisPriority.LOW,
                )
            )
        return follow_ups
