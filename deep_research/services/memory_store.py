"""Process-local research store used by the CLI and the test-suite."""
from __future__ import annotations

from dataclasses import replace
from typing import Any

from deep_research.exceptions import PersistenceError
from deep_research.models.run import EvidenceSource, ResearchRun, utc_now_iso


class InMemoryStore:
    def __init__(self) -> None:
        self.runs: dict[str, ResearchRun] = {}
        self.sources: dict[str, dict[str, EvidenceSource]] = {}
        self.conversations: dict[str, str] = {}  # conversation_id -> user_id
        self.messages: list[dict[str, Any]] = []

    async def create_run(self, run: ResearchRun) -> ResearchRun:
        self.runs[run.id] = run
        self.sources.setdefault(run.id, {})
        return replace(run)

    async def get_run(self, run_id: str) -> ResearchRun | None:
        run = self.runs.get(run_id)
        return replace(run) if run else None

    async def update_run(self, run_id: str, **fields: Any) -> None:
        run = self.runs.get(run_id)
        if run is None:
            raise PersistenceError("update", "research_runs", f"unknown run {run_id}")
        for key, value in fields.items():
            setattr(run, key, value)
        run.updated_at = utc_now_iso()

    async def insert_source(self, source: EvidenceSource) -> bool:
        by_url = self.sources.setdefault(source.run_id, {})
        if source.url in by_url:
            return False
        by_url[source.url] = replace(source)
        return True

    async def update_source_content(self, run_id: str, url: str, content: str) -> None:
        source = self.sources.get(run_id, {}).get(url)
        if source is not None:
            source.full_content = content

    async def list_sources(self, run_id: str) -> list[EvidenceSource]:
        return [replace(s) for s in self.sources.get(run_id, {}).values()]

    async def announce_run(self, conversation_id: str, run_id: str, query: str) -> bool:
        user_id = self.conversations.get(conversation_id)
        if not user_id:
            return False
        self.messages.append(
            {
                "conversation_id": conversation_id,
                "user_id": user_id,
                "role": "assistant",
                "content": f"Deep research in progress: \"{query}\"",
                "metadata": {"type": "research_report", "research_run_id": run_id, "query": query},
            }
        )
        return True


_store: InMemoryStore | None = None


def get_memory_store() -> InMemoryStore:
    global _store
    if _store is None:
        _store = InMemoryStore()
    return _store
