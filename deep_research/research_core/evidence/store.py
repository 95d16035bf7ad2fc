from __future__ import annotations

from dataclasses import replace

from deep_research.models.run import EvidenceSource
from deep_research.services import streaming
from deep_research.services.store import ResearchStore
from deep_research.services.streaming import RunEventBus


class EvidenceStore:
    """Append-only evidence for one run, deduplicated by url.

    Rows are written through to the backing store one at a time so observers
    see sources as soon as they are found. A local ordered copy serves the
    coverage judge and the report writer without re-reading the store.
    """

    def __init__(self, store: ResearchStore, run_id: str, *, bus: RunEventBus | None = None):
        self.store = store
        self.run_id = run_id
        self.bus = bus
        self._sources: dict[str, EvidenceSource] = {}

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, url: object) -> bool:
        return url in self._sources

    async def load(self) -> int:
        """Seed the local copy from rows already persisted for this run."""
        for source in await self.store.list_sources(self.run_id):
            self._sources.setdefault(source.url, source)
        return len(self._sources)

    async def append(self, source: EvidenceSource) -> bool:
        """Persist ``source`` unless its url is already known; True when it is new."""
        if source.run_id != self.run_id:
            raise ValueError(f"source belongs to run {source.run_id}, not {self.run_id}")
        if source.url in self._sources:
            return False
        # Claim the url before awaiting so concurrent appends cannot both write it.
        self._sources[source.url] = replace(source)
        inserted = await self.store.insert_source(source)
        if inserted and self.bus is not None:
            self.bus.publish(streaming.source_added(source))
        return inserted

    async def attach_content(self, url: str, content: str) -> None:
        source = self._sources.get(url)
        if source is None:
            return
        await self.store.update_source_content(self.run_id, url, content)
        source.full_content = content

    def sources(self) -> list[EvidenceSource]:
        return list(self._sources.values())
