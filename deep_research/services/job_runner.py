"""Background execution of research runs.

A request only creates the run row and schedules the pipeline; the caller
gets the run id back immediately and follows progress through the store
or the event stream.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable

from loguru import logger

from deep_research.agents.orchestrator import PipelineOrchestrator, PipelineResult
from deep_research.services.store import ResearchStore, get_store
from deep_research.services.streaming import RunEventBus, get_event_bus

OrchestratorFactory = Callable[[ResearchStore, RunEventBus], PipelineOrchestrator]


def _default_factory(store: ResearchStore, bus: RunEventBus) -> PipelineOrchestrator:
    return PipelineOrchestrator(store, bus=bus)


class ResearchJobRunner:
    """Tracks in-flight pipeline tasks for this process."""

    def __init__(
        self,
        *,
        store: ResearchStore | None = None,
        bus: RunEventBus | None = None,
        orchestrator_factory: OrchestratorFactory | None = None,
    ) -> None:
        self._store = store
        self._bus = bus
        self._factory = orchestrator_factory or _default_factory
        self._active_tasks: dict[str, asyncio.Task[PipelineResult]] = {}

    @property
    def active_job_count(self) -> int:
        return len(self._active_tasks)

    def submit(
        self,
        run_id: str,
        query: str,
        *,
        depth: str = "standard",
        mode: str = "web",
        domain_allow_list: list[str] | None = None,
        conversation_id: str | None = None,
        store: ResearchStore | None = None,
    ) -> asyncio.Task[PipelineResult]:
        """Schedule the pipeline for ``run_id`` and return without waiting.

        Submitting a run id that is already in flight returns the existing task.
        """
        existing = self._active_tasks.get(run_id)
        if existing is not None:
            logger.info(f"[{run_id}] run already in flight; not scheduling it twice")
            return existing

        store = store or self._store or get_store()
        bus = self._bus or get_event_bus()
        orchestrator = self._factory(store, bus)
        task = asyncio.create_task(
            orchestrator.run(
                run_id,
                query,
                depth=depth,
                mode=mode,
                domain_allow_list=domain_allow_list,
                conversation_id=conversation_id,
            ),
            name=f"research-{run_id}",
        )
        self._active_tasks[run_id] = task
        task.add_done_callback(lambda t: self._on_done(run_id, t))
        logger.info(f"[{run_id}] research job scheduled (depth={depth}, active={self.active_job_count})")
        return task

    def _on_done(self, run_id: str, task: asyncio.Task[PipelineResult]) -> None:
        self._active_tasks.pop(run_id, None)
        if task.cancelled():
            logger.warning(f"[{run_id}] research job cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"[{run_id}] research job crashed: {exc}")
            return
        result = task.result()
        logger.info(
            f"[{run_id}] research job finished: {result.status.value} after {result.iterations} "
            f"iterations ({result.stop_reason or 'no stop reason'}), {result.evidence_count} sources"
        )

    async def shutdown(self) -> None:
        """Cancel in-flight jobs and wait for them to unwind."""
        tasks = list(self._active_tasks.values())
        if not tasks:
            return
        logger.info(f"Cancelling {len(tasks)} research jobs")
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task


_runner: ResearchJobRunner | None = None


def get_job_runner() -> ResearchJobRunner:
    global _runner
    if _runner is None:
        _runner = ResearchJobRunner()
    return _runner
