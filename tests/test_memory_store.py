from __future__ import annotations

import pytest

from deep_research.exceptions import PersistenceError
from deep_research.models.run import RunStatus


@pytest.mark.asyncio
async def test_get_run_returns_copy(store, run):
    copy = await store.get_run(run.id)
    copy.status = RunStatus.FAILED
    assert (await store.get_run(run.id)).status == RunStatus.PENDING


@pytest.mark.asyncio
async def test_update_unknown_run_raises(store):
    with pytest.raises(PersistenceError):
        await store.update_run("missing", progress_percent=10)


@pytest.mark.asyncio
async def test_announce_run_posts_assistant_message(store, run):
    store.conversations["conv-1"] = "user-9"

    assert await store.announce_run("conv-1", run.id, run.query) is True

    message = store.messages[0]
    assert message["role"] == "assistant"
    assert message["user_id"] == "user-9"
    assert message["metadata"] == {
        "type": "research_report",
        "research_run_id": run.id,
        "query": run.query,
    }


@pytest.mark.asyncio
async def test_announce_run_unknown_conversation(store, run):
    assert await store.announce_run("nope", run.id, run.query) is False
    assert store.messages == []
