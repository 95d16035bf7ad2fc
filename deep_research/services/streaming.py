"""In-process change feed for research runs.

Progress and evidence writers publish here after their write succeeded;
SSE subscribers receive the events for one run id. Polling the store
observes the same state, the feed only makes it arrive sooner.
"""
from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from deep_research.models.events import RunEvent, RunEventType
from deep_research.models.run import EvidenceSource, ResearchRun


def snapshot(run: ResearchRun) -> RunEvent:
    return RunEvent(event=RunEventType.SNAPSHOT, run_id=run.id, data=run.to_dict())


def progress(run_id: str, stage: str, percent: int, message: str, status: str) -> RunEvent:
    return RunEvent(
        event=RunEventType.PROGRESS,
        run_id=run_id,
        data={
            "stage": stage,
            "percent": percent,
            "message": message,
            "status": status,
        },
    )


def source_added(source: EvidenceSource) -> RunEvent:
    return RunEvent(
        event=RunEventType.SOURCE_ADDED,
        run_id=source.run_id,
        data={
            "title": source.title,
            "url": source.url,
            "axe_id": source.axe_id,
            "iteration": source.iteration,
        },
    )


def run_completed(run_id: str, report_title: str | None, error_message: str | None = None) -> RunEvent:
    data: dict[str, Any] = {"report_title": report_title}
    if error_message:
        data["error_message"] = error_message
    return RunEvent(event=RunEventType.RUN_COMPLETED, run_id=run_id, data=data)


def run_failed(run_id: str, error_message: str) -> RunEvent:
    return RunEvent(event=RunEventType.RUN_FAILED, run_id=run_id, data={"error_message": error_message})


class RunEventBus:
    def __init__(self) -> None:
        self._subscribers: dict[str, set[asyncio.Queue[RunEvent]]] = defaultdict(set)

    def publish(self, event: RunEvent) -> None:
        for queue in list(self._subscribers.get(event.run_id, ())):
            queue.put_nowait(event)

    def subscriber_count(self, run_id: str) -> int:
        return len(self._subscribers.get(run_id, ()))

    @asynccontextmanager
    async def subscribe(self, run_id: str) -> AsyncIterator[asyncio.Queue[RunEvent]]:
        queue: asyncio.Queue[RunEvent] = asyncio.Queue()
        self._subscribers[run_id].add(queue)
        try:
            yield queue
        finally:
            self._subscribers[run_id].discard(queue)
            if not self._subscribers[run_id]:
                del self._subscribers[run_id]


_bus: RunEventBus | None = None


def get_event_bus() -> RunEventBus:
    global _bus
    if _bus is None:
        _bus = RunEventBus()
    return _bus
