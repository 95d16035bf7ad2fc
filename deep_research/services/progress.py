from __future__ import annotations

from typing import Any

from loguru import logger

from deep_research.models.run import ProgressStage, RunStatus
from deep_research.services import logger as log_service
from deep_research.services import streaming
from deep_research.services.store import ResearchStore
from deep_research.services.streaming import RunEventBus


class ProgressSink:
    """Writes the `{stage, percent, message}` status of one run.

    ``progress_percent`` never decreases: a lower value than the last written
    one is raised to it. Store failures propagate as ``PersistenceError``.
    """

    def __init__(
        self,
        store: ResearchStore,
        run_id: str,
        *,
        bus: RunEventBus | None = None,
        initial_percent: int = 0,
    ):
        self.store = store
        self.run_id = run_id
        self.bus = bus
        self._last_percent = max(0, min(int(initial_percent), 100))

    @property
    def last_percent(self) -> int:
        return self._last_percent

    def _clamp(self, percent: float) -> int:
        return max(self._last_percent, min(int(round(percent)), 100))

    async def update(self, stage: ProgressStage, percent: float, message: str) -> int:
        value = self._clamp(percent)
        await self.store.update_run(
            self.run_id,
            status=RunStatus.RUNNING,
            progress_stage=stage,
            progress_percent=value,
            progress_message=message,
        )
        self._last_percent = value
        logger.info(f"[{self.run_id}] [{stage.value}] {value}% - {message}")
        self._publish(streaming.progress(self.run_id, stage.value, value, message, RunStatus.RUNNING.value))
        return value

    async def complete(
        self,
        *,
        report_markdown: str,
        report_title: str,
        executive_summary: str,
        error_message: str | None = None,
        message: str = "Research complete.",
    ) -> None:
        fields: dict[str, Any] = {
            "status": RunStatus.COMPLETED,
            "progress_stage": ProgressStage.COMPLETED,
            "progress_percent": 100,
            "progress_message": message,
            "report_markdown": report_markdown,
            "report_title": report_title,
            "executive_summary": executive_summary,
            "error_message": error_message,
        }
        await self.store.update_run(self.run_id, **fields)
        self._last_percent = 100
        log_service.log_research_step(self.run_id, "pipeline", "completed", {"report_title": report_title})
        self._publish(streaming.run_completed(self.run_id, report_title, error_message))

    async def fail(self, error_message: str) -> None:
        """Mark the run failed, keeping the last percent."""
        await self.store.update_run(
            self.run_id,
            status=RunStatus.FAILED,
            progress_stage=ProgressStage.FAILED,
            progress_percent=self._last_percent,
            progress_message=f"Error: {error_message}",
            error_message=error_message,
        )
        log_service.log_research_step(self.run_id, "pipeline", "failed", {"error": error_message})
        self._publish(streaming.run_failed(self.run_id, error_message))

    def _publish(self, event) -> None:
        if self.bus is not None:
            self.bus.publish(event)
