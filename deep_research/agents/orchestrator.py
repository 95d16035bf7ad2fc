"""Deep research pipeline: plan, collect and judge in a loop, then write the report.

All state observers care about lives in the store: the run row carries
status and progress, evidence rows are appended as they are found. The
orchestrator itself holds nothing beyond the life of one ``run`` call.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from deep_research.agents.coverage_judge import CoverageJudge
from deep_research.agents.planner import ResearchPlanner
from deep_research.agents.synthesizer import ReportSynthesizer
from deep_research.config import settings
from deep_research.llm_client import OpenRouterTextGenerator
from deep_research.models.coverage import CoverageVerdict
from deep_research.models.policy import DepthPolicy, resolve_depth_policy
from deep_research.models.research_plan import Axis
from deep_research.models.run import ProgressStage, ResearchRun, RunStatus
from deep_research.research_core.evidence.store import EvidenceStore
from deep_research.research_core.models.interfaces import (
    ExtractProvider,
    SearchProvider,
    TextGenerator,
)
from deep_research.services import logger as log_service
from deep_research.services.collection_round import CollectionRound
from deep_research.services.progress import ProgressSink
from deep_research.services.store import ResearchStore
from deep_research.services.streaming import RunEventBus
from deep_research.tools.extract_provider import WebExtractProvider
from deep_research.tools.search_provider import WebSearchProvider

FRAMING_PERCENT = 5
PLANNING_PERCENT = 10
SYNTHESIZING_PERCENT = 85

STOP_SUFFICIENT = "judge_sufficient"
STOP_COVERAGE = "coverage_threshold"
STOP_MAX_ITERATIONS = "max_iterations"
STOP_NO_PENDING = "no_pending_axes"


@dataclass(slots=True)
class PipelineResult:
    run_id: str
    status: RunStatus
    iterations: int = 0
    stop_reason: str | None = None
    evidence_count: int = 0
    coverage_score: int | None = None
    error_message: str | None = None


@dataclass(slots=True)
class LoopOutcome:
    iterations: int = 0
    stop_reason: str | None = None
    verdicts: list[CoverageVerdict] = field(default_factory=list)


def stop_reason(
    verdict: CoverageVerdict,
    iteration: int,
    policy: DepthPolicy,
    next_axes: list[Axis],
) -> str | None:
    """Why the loop stops after ``iteration``, or None to keep collecting."""
    if verdict.sufficient:
        return STOP_SUFFICIENT
    if verdict.coverage_score >= policy.min_coverage:
        return STOP_COVERAGE
    if iteration >= policy.max_iterations:
        return STOP_MAX_ITERATIONS
    if not next_axes:
        return STOP_NO_PENDING
    return None


class PipelineOrchestrator:
    """Runs one research request end to end against a store.

    Collaborators default to the configured providers and gateway models;
    tests pass fakes for each of them.
    """

    def __init__(
        self,
        store: ResearchStore,
        *,
        search_provider: SearchProvider | None = None,
        extract_provider: ExtractProvider | None = None,
        planner_generator: TextGenerator | None = None,
        judge_generator: TextGenerator | None = None,
        writer_generator: TextGenerator | None = None,
        bus: RunEventBus | None = None,
        locale: str | None = None,
    ):
        self.store = store
        self.search_provider = search_provider or WebSearchProvider()
        self.extract_provider = extract_provider or WebExtractProvider()
        self.planner = ResearchPlanner(planner_generator or OpenRouterTextGenerator("planner"))
        self.judge = CoverageJudge(judge_generator or OpenRouterTextGenerator("judge"))
        self.synthesizer = ReportSynthesizer(
            writer_generator
            or OpenRouterTextGenerator("writer", timeout_seconds=settings.writer_timeout_seconds)
        )
        self.bus = bus
        self.locale = locale or f"{settings.search_language}-{settings.search_country}"

    async def run(
        self,
        run_id: str,
        query: str,
        *,
        depth: str = "standard",
        mode: str = "web",
        domain_allow_list: list[str] | None = None,
        conversation_id: str | None = None,
        policy: DepthPolicy | None = None,
    ) -> PipelineResult:
        """Drive the run to ``completed`` or ``failed``.

        Every exception raised inside the pipeline ends up in the run row as
        ``failed`` with its message; nothing is re-raised to the caller.
        """
        policy = policy or resolve_depth_policy(depth)

        try:
            existing = await self._existing_run(run_id, query, depth, mode)
        except Exception as exc:
            logger.exception(f"[{run_id}] could not load run: {exc}")
            return PipelineResult(run_id=run_id, status=RunStatus.FAILED, error_message=str(exc))

        if existing is not None and existing.is_terminal:
            logger.warning(f"[{run_id}] run is already {existing.status.value}; not restarting it")
            return PipelineResult(run_id=run_id, status=existing.status, error_message=existing.error_message)

        if mode != "web":
            logger.info(f"[{run_id}] mode '{mode}' requested; collecting from the web")

        progress = ProgressSink(
            self.store,
            run_id,
            bus=self.bus,
            initial_percent=existing.progress_percent if existing else 0,
        )
        evidence = EvidenceStore(self.store, run_id, bus=self.bus)
        result = PipelineResult(run_id=run_id, status=RunStatus.RUNNING)

        try:
            if conversation_id:
                await self._announce(conversation_id, run_id, query)

            await progress.update(
                ProgressStage.FRAMING, FRAMING_PERCENT, "Analyzing the question and framing the research..."
            )
            plan = await self.planner.plan(query, policy.axis_count)
            log_service.log_research_step(
                run_id, "plan", "completed", {"axes": [a.id for a in plan.axes], "depth": depth}
            )
            await progress.update(
                ProgressStage.PLANNING, PLANNING_PERCENT, f"Plan established: {len(plan.axes)} research axes"
            )

            await evidence.load()
            outcome = await self._collect(
                run_id, query, plan.axes, policy, evidence, progress, domain_allow_list
            )
            result.iterations = outcome.iterations
            result.stop_reason = outcome.stop_reason
            if outcome.verdicts:
                result.coverage_score = outcome.verdicts[-1].coverage_score

            await progress.update(
                ProgressStage.SYNTHESIZING,
                SYNTHESIZING_PERCENT,
                f"Writing the report from {len(evidence)} sources...",
            )
            synthesis = await self.synthesizer.synthesize(query, evidence.sources())
            await progress.complete(
                report_markdown=synthesis.report_markdown,
                report_title=synthesis.report_title,
                executive_summary=synthesis.executive_summary,
                error_message=synthesis.error_message,
            )
            result.status = RunStatus.COMPLETED
            result.error_message = synthesis.error_message
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.exception(f"[{run_id}] research pipeline failed: {message}")
            result.status = RunStatus.FAILED
            result.error_message = message
            try:
                await progress.fail(message)
            except Exception as write_exc:
                logger.error(f"[{run_id}] could not record failure: {write_exc}")

        result.evidence_count = len(evidence)
        return result

    async def _collect(
        self,
        run_id: str,
        query: str,
        axes: list[Axis],
        policy: DepthPolicy,
        evidence: EvidenceStore,
        progress: ProgressSink,
        domain_allow_list: list[str] | None,
    ) -> LoopOutcome:
        collection = CollectionRound(
            self.search_provider,
            self.extract_provider,
            evidence,
            progress,
            locale=self.locale,
        )
        known_axes = {axis.id: axis for axis in axes}
        pending = list(axes)
        outcome = LoopOutcome()

        for iteration in range(1, policy.max_iterations + 1):
            await collection.run(
                iteration,
                pending,
                results_per_axis=policy.results_per_axis,
                max_iterations=policy.max_iterations,
                domain_allow_list=domain_allow_list,
            )
            outcome.iterations = iteration

            verdict = await self.judge.evaluate(query, axes, evidence.sources())
            outcome.verdicts.append(verdict)

            next_axes = self.judge.next_axes(verdict, known_axes)
            reason = stop_reason(verdict, iteration, policy, next_axes)

            log_service.log_research_step(
                run_id,
                "coverage",
                "completed",
                {
                    "iteration": iteration,
                    "coverage_score": verdict.coverage_score,
                    "sufficient": verdict.sufficient,
                    "stop_reason": reason,
                },
            )
            if reason is not None:
                outcome.stop_reason = reason
                break
            pending = next_axes

        return outcome

    async def _existing_run(self, run_id: str, query: str, depth: str, mode: str) -> ResearchRun | None:
        existing = await self.store.get_run(run_id)
        if existing is None:
            await self.store.create_run(ResearchRun(id=run_id, query=query, depth=depth, mode=mode))
        return existing

    async def _announce(self, conversation_id: str, run_id: str, query: str) -> None:
        try:
            posted = await self.store.announce_run(conversation_id, run_id, query)
        except Exception as exc:
            logger.warning(f"[{run_id}] could not announce run in conversation {conversation_id}: {exc}")
            return
        if not posted:
            logger.warning(f"[{run_id}] conversation {conversation_id} not found; run not announced")
