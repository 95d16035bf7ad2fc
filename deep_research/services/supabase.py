from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any

from supabase import Client, create_client

from deep_research.config import settings
from deep_research.exceptions import PersistenceError
from deep_research.models.run import EvidenceSource, ResearchRun, utc_now_iso
from deep_research.services import logger as log_service

RUNS_TABLE = "research_runs"
SOURCES_TABLE = "research_sources"


def get_client() -> Client:
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise PersistenceError("connect", "supabase", "SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not configured")
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


_client: Client | None = None


def client() -> Client:
    global _client
    if _client is None:
        _client = get_client()
    return _client


def _jsonable(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in fields.items()}


class SupabaseStore:
    """Research runs and sources stored in Supabase (PostgREST).

    supabase-py is blocking, so every query executes in a worker thread.
    """

    def __init__(self, supabase_client: Client | None = None):
        self._client = supabase_client

    @property
    def db(self) -> Client:
        return self._client or client()

    async def _execute(self, operation: str, table: str, query: Any) -> Any:
        try:
            result = await asyncio.to_thread(query.execute)
        except Exception as exc:
            log_service.log_db_operation(operation, table, "failed", error=str(exc))
            raise PersistenceError(operation, table, str(exc)) from exc
        log_service.log_db_operation(operation, table, "success")
        return result

    # --- Runs ---

    async def create_run(self, run: ResearchRun) -> ResearchRun:
        row = _jsonable(run.to_dict())
        result = await self._execute(
            "insert",
            RUNS_TABLE,
            self.db.table(RUNS_TABLE).upsert(row, on_conflict="id", ignore_duplicates=True),
        )
        if result.data:
            return ResearchRun.from_row(result.data[0])
        existing = await self.get_run(run.id)
        return existing or run

    async def get_run(self, run_id: str) -> ResearchRun | None:
        result = await self._execute(
            "select",
            RUNS_TABLE,
            self.db.table(RUNS_TABLE).select("*").eq("id", run_id),
        )
        return ResearchRun.from_row(result.data[0]) if result.data else None

    async def update_run(self, run_id: str, **fields: Any) -> None:
        update = _jsonable({**fields, "updated_at": utc_now_iso()})
        await self._execute(
            "update",
            RUNS_TABLE,
            self.db.table(RUNS_TABLE).update(update).eq("id", run_id),
        )

    # --- Sources ---

    async def insert_source(self, source: EvidenceSource) -> bool:
        result = await self._execute(
            "insert",
            SOURCES_TABLE,
            self.db.table(SOURCES_TABLE).upsert(
                source.to_row(),
                on_conflict="run_id,url",
                ignore_duplicates=True,
            ),
        )
        return bool(result.data)

    async def update_source_content(self, run_id: str, url: str, content: str) -> None:
        await self._execute(
            "update",
            SOURCES_TABLE,
            self.db.table(SOURCES_TABLE)
            .update({"full_content": content})
            .eq("run_id", run_id)
            .eq("url", url),
        )

    async def list_sources(self, run_id: str) -> list[EvidenceSource]:
        result = await self._execute(
            "select",
            SOURCES_TABLE,
            self.db.table(SOURCES_TABLE)
            .select("*")
            .eq("run_id", run_id)
            .order("created_at")
            .order("seq"),
        )
        return [EvidenceSource.from_row(row) for row in result.data or []]

    # --- Conversations ---

    async def announce_run(self, conversation_id: str, run_id: str, query: str) -> bool:
        result = await self._execute(
            "select",
            "conversations",
            self.db.table("conversations").select("user_id").eq("id", conversation_id),
        )
        user_id = result.data[0].get("user_id") if result.data else None
        if not user_id:
            return False
        await self._execute(
            "insert",
            "messages",
            self.db.table("messages").insert(
                {
                    "conversation_id": conversation_id,
                    "user_id": user_id,
                    "role": "assistant",
                    "content": f"Deep research in progress: \"{query}\"",
                    "metadata": {
                        "type": "research_report",
                        "research_run_id": run_id,
                        "query": query,
                    },
                }
            ),
        )
        return True
