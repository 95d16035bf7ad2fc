"""Deep Research - command line runner.

Runs one research request in-process and prints progress as it happens.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from uuid import uuid4

from deep_research.agents.orchestrator import PipelineOrchestrator
from deep_research.models.events import RunEvent, RunEventType
from deep_research.models.policy import ResearchDepth
from deep_research.services.memory_store import InMemoryStore
from deep_research.services.store import get_store
from deep_research.services.streaming import RunEventBus


def print_event(event: RunEvent) -> None:
    data = event.data
    if event.event == RunEventType.PROGRESS:
        print(f"[{data.get('percent', 0):>3}%] {data.get('stage')}: {data.get('message')}")
    elif event.event == RunEventType.SOURCE_ADDED:
        print(f"       + [axis {data.get('axe_id')}] {data.get('title', '')[:70]} ({data.get('url')})")
    elif event.event == RunEventType.RUN_FAILED:
        print(f"\n[!] Error: {data.get('error_message', 'Unknown error')}")


async def follow(bus: RunEventBus, run_id: str) -> None:
    async with bus.subscribe(run_id) as queue:
        while True:
            event = await queue.get()
            print_event(event)
            if event.is_terminal:
                return


async def run_research(
    query: str,
    depth: str,
    sites: list[str],
    use_configured_store: bool = False,
    output: Path | None = None,
) -> int:
    print(f"Research query: {query} (depth: {depth})")
    print("-" * 50)

    store = get_store() if use_configured_store else InMemoryStore()
    bus = RunEventBus()
    run_id = str(uuid4())
    orchestrator = PipelineOrchestrator(store, bus=bus)

    follower = asyncio.create_task(follow(bus, run_id))
    await asyncio.sleep(0)  # let the follower subscribe before the first event
    result = await orchestrator.run(run_id, query, depth=depth, domain_allow_list=sites)
    try:
        await asyncio.wait_for(follower, timeout=5)
    except asyncio.TimeoutError:
        pass

    if result.status.value != "completed":
        if result.error_message:
            print(f"\n[!] Research failed: {result.error_message}")
        return 1
    run = await store.get_run(run_id)
    if run is None:
        return 1

    print(f"\n[*] Research complete after {result.iterations} iteration(s), {result.evidence_count} sources")
    if run.error_message:
        print(f"[!] {run.error_message}")
    print(f"\n{'=' * 50}")
    print(run.report_title or "REPORT")
    print(f"{'=' * 50}")
    print(run.report_markdown or "")

    if output is not None:
        output.write_text(run.report_markdown or "", encoding="utf-8")
        print(f"\nReport written to {output}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Deep Research CLI")
    parser.add_argument("--query", "-q", required=True, help="Research question")
    parser.add_argument(
        "--depth",
        "-d",
        choices=[d.value for d in ResearchDepth],
        default=ResearchDepth.STANDARD.value,
        help="Research depth (default: standard)",
    )
    parser.add_argument(
        "--site",
        action="append",
        default=[],
        help="Restrict searches to this domain (repeatable)",
    )
    parser.add_argument(
        "--persist",
        action="store_true",
        help="Write the run to the configured STORAGE_BACKEND instead of memory",
    )
    parser.add_argument("--output", "-o", type=Path, help="Also write the report to this file")

    args = parser.parse_args()

    sys.exit(asyncio.run(run_research(args.query, args.depth, args.site, args.persist, args.output)))


if __name__ == "__main__":
    main()
