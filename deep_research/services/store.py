from __future__ import annotations

from typing import Any, Protocol

from deep_research.models.run import EvidenceSource, ResearchRun


class ResearchStore(Protocol):
    """Persistence for research runs and their evidence.

    Implementations raise ``PersistenceError`` when a read or write fails.
    """

    async def create_run(self, run: ResearchRun) -> ResearchRun:
        ...

    async def get_run(self, run_id: str) -> ResearchRun | None:
        ...

    async def update_run(self, run_id: str, **fields: Any) -> None:
        ...

    async def insert_source(self, source: EvidenceSource) -> bool:
        """Insert unless ``(run_id, url)`` exists; True when a row was written."""
        ...

    async def update_source_content(self, run_id: str, url: str, content: str) -> None:
        ...

    async def list_sources(self, run_id: str) -> list[EvidenceSource]:
        ...

    async def announce_run(self, conversation_id: str, run_id: str, query: str) -> bool:
        """Post a progress placeholder message into the owning conversation."""
        ...


def get_store() -> ResearchStore:
    """Build the store selected by ``STORAGE_BACKEND``."""
    from deep_research.config import settings

    backend = settings.storage_backend.lower().strip()
    if backend == "supabase":
        from deep_research.services.supabase import SupabaseStore

        return SupabaseStore()
    if backend == "memory":
        from deep_research.services.memory_store import get_memory_store

        return get_memory_store()
    raise ValueError(f"Unsupported STORAGE_BACKEND: {settings.storage_backend}")
