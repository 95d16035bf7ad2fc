from __future__ import annotations

import asyncio

import pytest

from conftest import REPORT_MARKDOWN, FakeExtract, FakeSearch, ScriptedGenerator, plan_json, verdict_json
from deep_research.agents.orchestrator import PipelineOrchestrator
from deep_research.models.run import RunStatus
from deep_research.services.job_runner import ResearchJobRunner


def _factory(search=None):
    def build(store, bus):
        return PipelineOrchestrator(
            store,
            search_provider=search or FakeSearch(),
            extract_provider=FakeExtract(),
            planner_generator=ScriptedGenerator(plan_json(3)),
            judge_generator=ScriptedGenerator(verdict_json(90, True)),
            writer_generator=ScriptedGenerator(REPORT_MARKDOWN),
            bus=bus,
        )

    return build


class BlockingSearch(FakeSearch):
    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()

    async def search(self, query, limit, locale=None, domains=None):
        self.started.set()
        await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_submit_returns_before_the_run_finishes(store, bus, run):
    runner = ResearchJobRunner(store=store, bus=bus, orchestrator_factory=_factory())

    task = runner.submit(run.id, run.query, depth="quick")

    assert runner.active_job_count == 1
    result = await task
    await asyncio.sleep(0)

    assert result.status == RunStatus.COMPLETED
    assert runner.active_job_count == 0
    assert (await store.get_run(run.id)).report_title == "Solar Storage Outlook"


@pytest.mark.asyncio
async def test_duplicate_submit_reuses_task(store, bus, run):
    runner = ResearchJobRunner(store=store, bus=bus, orchestrator_factory=_factory())

    first = runner.submit(run.id, run.query, depth="quick")
    second = runner.submit(run.id, run.query, depth="quick")

    assert first is second
    await first


@pytest.mark.asyncio
async def test_shutdown_cancels_in_flight_jobs(store, bus, run):
    search = BlockingSearch()
    runner = ResearchJobRunner(store=store, bus=bus, orchestrator_factory=_factory(search))

    task = runner.submit(run.id, run.query, depth="quick")
    await asyncio.wait_for(search.started.wait(), timeout=1)
    await runner.shutdown()
    await asyncio.sleep(0)

    assert task.cancelled()
    assert runner.active_job_count == 0
