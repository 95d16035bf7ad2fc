"""Research planner: frames a question into reformulation, objective, scope and axes."""

from __future__ import annotations

from loguru import logger

from deep_research.models.research_plan import Axis, ResearchPlan
from deep_research.research_core.models.interfaces import TextGenerator
from deep_research.services.prompt_store import render_prompt
from deep_research.services.structured_output import parse_structured


def _normalize_axes(axes: list[Axis], axis_count: int) -> list[Axis]:
    seen: set[str] = set()
    normalized: list[Axis] = []
    for index, axis in enumerate(axes, start=1):
        question = axis.question.strip()
        if not question:
            continue
        axis_id = axis.id.strip()
        if not axis_id or axis_id in seen:
            axis_id = str(index)
            while axis_id in seen:
                axis_id = f"{axis_id}b"
        seen.add(axis_id)
        normalized.append(
            axis.model_copy(
                update={
                    "id": axis_id,
                    "title": axis.title.strip() or question,
                    "question": question,
                    "keywords": axis.keywords or [question],
                }
            )
        )
        if len(normalized) >= axis_count:
            break
    return normalized


class ResearchPlanner:
    """Turns a user question into a research plan with ``axis_count`` axes.

    The planner never fails: when generation or parsing goes wrong, or the
    model returns no usable axis, the trivial one-axis plan is returned.
    """

    def __init__(self, generator: TextGenerator, *, max_tokens: int | None = None):
        self.generator = generator
        self.max_tokens = max_tokens

    async def plan(self, query: str, axis_count: int) -> ResearchPlan:
        axis_count = max(int(axis_count), 1)
        prompt = render_prompt("planner.prompt", query=query, axis_count=axis_count)

        try:
            raw = await self.generator.generate(prompt, max_tokens=self.max_tokens)
            parsed = parse_structured(raw, ResearchPlan)
        except Exception as exc:
            logger.warning(f"Planner fell back to a single-axis plan: {exc}")
            return ResearchPlan.trivial(query)

        axes = _normalize_axes(parsed.axes, axis_count)
        if not axes:
            logger.warning("Planner returned no usable axis; using a single-axis plan")
            return ResearchPlan.trivial(query)

        if len(axes) < axis_count:
            logger.info(f"Planner returned {len(axes)} axes, {axis_count} requested")

        return ResearchPlan(
            reformulation=parsed.reformulation.strip() or query,
            objective=parsed.objective.strip(),
            scope=parsed.scope.strip(),
            axes=axes,
        )
