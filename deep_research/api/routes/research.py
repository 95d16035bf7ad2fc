from __future__ import annotations

import asyncio
import json
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from deep_research.api.deps import event_bus, job_runner, research_store
from deep_research.exceptions import PersistenceError
from deep_research.models.events import RunEvent
from deep_research.models.run import ResearchRun
from deep_research.models.schemas import (
    ResearchRequest,
    ResearchRunResponse,
    ResearchStartResponse,
    SourceResponse,
    SourcesResponse,
)
from deep_research.services import logger as log_service
from deep_research.services import streaming
from deep_research.services.job_runner import ResearchJobRunner
from deep_research.services.store import ResearchStore
from deep_research.services.streaming import RunEventBus

router = APIRouter(prefix="/api/research", tags=["research"])

# Without events for this long the stream re-reads the run row, which also
# catches runs driven by another process.
STREAM_POLL_SECONDS = 15.0


async def _load_run(store: ResearchStore, run_id: str) -> ResearchRun:
    try:
        run = await store.get_run(run_id)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    if run is None:
        raise HTTPException(status_code=404, detail="Research run not found")
    return run


def _sse(event: RunEvent) -> dict[str, str]:
    return {"event": event.event.value, "data": json.dumps(event.data)}


@router.post("", response_model=ResearchStartResponse)
async def start_research(
    request: ResearchRequest,
    store: ResearchStore = Depends(research_store),
    runner: ResearchJobRunner = Depends(job_runner),
):
    """Create the run and schedule the pipeline; returns before any work is done."""
    run_id = request.run_id or str(uuid4())
    try:
        existing = await store.get_run(run_id)
        if existing is not None and existing.is_terminal:
            raise HTTPException(
                status_code=409,
                detail=f"Run {run_id} is already {existing.status.value}; start a new run id",
            )
        if existing is None:
            await store.create_run(
                ResearchRun(id=run_id, query=request.query, depth=request.depth, mode=request.mode)
            )
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    runner.submit(
        run_id,
        request.query,
        depth=request.depth,
        mode=request.mode,
        domain_allow_list=request.domain_allow_list,
        conversation_id=request.conversation_id,
        store=store,
    )
    log_service.log_event(
        event_type="research_started",
        message="Research started",
        run_id=run_id,
        depth=request.depth,
        query=request.query[:100],
    )
    return ResearchStartResponse(run_id=run_id)


@router.get("/{run_id}", response_model=ResearchRunResponse)
async def get_research_run(run_id: str, store: ResearchStore = Depends(research_store)):
    run = await _load_run(store, run_id)
    return ResearchRunResponse(**run.to_dict())


@router.get("/{run_id}/sources", response_model=SourcesResponse)
async def list_research_sources(run_id: str, store: ResearchStore = Depends(research_store)):
    await _load_run(store, run_id)
    try:
        sources = await store.list_sources(run_id)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return SourcesResponse(
        run_id=run_id,
        sources=[
            SourceResponse(
                title=s.title,
                url=s.url,
                snippet=s.snippet,
                full_content=s.full_content,
                relevance_score=s.relevance_score,
                axe_id=s.axe_id,
                iteration=s.iteration,
                provider=s.provider,
            )
            for s in sources
        ],
    )


@router.get("/{run_id}/stream")
async def stream_research(
    run_id: str,
    store: ResearchStore = Depends(research_store),
    bus: RunEventBus = Depends(event_bus),
):
    """SSE feed of one run: a snapshot, then progress until the run is terminal."""
    await _load_run(store, run_id)

    async def event_generator():
        async with bus.subscribe(run_id) as queue:
            # Read after subscribing so no event between read and subscribe is lost.
            current = await store.get_run(run_id)
            if current is None:
                return
            yield _sse(streaming.snapshot(current))
            if current.is_terminal:
                return

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=STREAM_POLL_SECONDS)
                except asyncio.TimeoutError:
                    latest = await store.get_run(run_id)
                    if latest is None:
                        return
                    if latest.is_terminal:
                        yield _sse(streaming.snapshot(latest))
                        return
                    continue

                yield _sse(event)
                if event.is_terminal:
                    return

    return EventSourceResponse(event_generator())
