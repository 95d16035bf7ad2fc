from __future__ import annotations

import pytest

from deep_research.models.events import RunEventType
from deep_research.models.run import ProgressStage, RunStatus
from deep_research.services.progress import ProgressSink


@pytest.mark.asyncio
async def test_progress_never_decreases(store, run):
    sink = ProgressSink(store, run.id)

    await sink.update(ProgressStage.COLLECTING, 40, "first")
    written = await sink.update(ProgressStage.COLLECTING, 20.4, "late writer")

    assert written == 40
    current = await store.get_run(run.id)
    assert current.progress_percent == 40
    assert current.status == RunStatus.RUNNING
    assert current.progress_message == "late writer"


@pytest.mark.asyncio
async def test_fail_keeps_last_percent(store, run):
    sink = ProgressSink(store, run.id)
    await sink.update(ProgressStage.PLANNING, 10, "planned")

    await sink.fail("database went away")

    current = await store.get_run(run.id)
    assert current.status == RunStatus.FAILED
    assert current.progress_stage == ProgressStage.FAILED
    assert current.progress_percent == 10
    assert current.error_message == "database went away"
    assert current.progress_message == "Error: database went away"


@pytest.mark.asyncio
async def test_complete_writes_report(store, run):
    sink = ProgressSink(store, run.id)

    await sink.complete(report_markdown="# T\n\nbody", report_title="T", executive_summary="body")

    current = await store.get_run(run.id)
    assert current.status == RunStatus.COMPLETED
    assert current.progress_percent == 100
    assert current.report_title == "T"
    assert current.error_message is None


@pytest.mark.asyncio
async def test_events_published_after_writes(store, bus, run):
    sink = ProgressSink(store, run.id, bus=bus)

    async with bus.subscribe(run.id) as queue:
        await sink.update(ProgressStage.FRAMING, 5, "framing")
        await sink.fail("boom")
        first = queue.get_nowait()
        second = queue.get_nowait()

    assert first.event == RunEventType.PROGRESS
    assert first.data == {"stage": "framing", "percent": 5, "message": "framing", "status": "running"}
    assert second.event == RunEventType.RUN_FAILED
    assert second.is_terminal
    assert bus.subscriber_count(run.id) == 0
