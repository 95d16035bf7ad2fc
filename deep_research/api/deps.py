from __future__ import annotations

from deep_research.services.job_runner import ResearchJobRunner, get_job_runner
from deep_research.services.store import ResearchStore, get_store
from deep_research.services.streaming import RunEventBus, get_event_bus


def research_store() -> ResearchStore:
    """Store backing the API, selected by ``STORAGE_BACKEND``."""
    return get_store()


def event_bus() -> RunEventBus:
    return get_event_bus()


def job_runner() -> ResearchJobRunner:
    return get_job_runner()
