from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


class RunStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ProgressStage(StrEnum):
    FRAMING = "framing"
    PLANNING = "planning"
    COLLECTING = "collecting"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.FAILED})


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class ResearchRun:
    id: str
    query: str
    depth: str = "standard"
    mode: str = "web"
    status: RunStatus = RunStatus.PENDING
    progress_stage: ProgressStage | None = None
    progress_percent: int = 0
    progress_message: str = ""
    report_markdown: str | None = None
    report_title: str | None = None
    executive_summary: str | None = None
    error_message: str | None = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["progress_stage"] = self.progress_stage.value if self.progress_stage else None
        return data

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ResearchRun":
        stage = row.get("progress_stage")
        return cls(
            id=str(row["id"]),
            query=str(row.get("query") or ""),
            depth=str(row.get("depth") or "standard"),
            mode=str(row.get("mode") or "web"),
            status=RunStatus(row.get("status") or RunStatus.PENDING),
            progress_stage=ProgressStage(stage) if stage else None,
            progress_percent=int(row.get("progress_percent") or 0),
            progress_message=str(row.get("progress_message") or ""),
            report_markdown=row.get("report_markdown"),
            report_title=row.get("report_title"),
            executive_summary=row.get("executive_summary"),
            error_message=row.get("error_message"),
            created_at=str(row.get("created_at") or utc_now_iso()),
            updated_at=str(row.get("updated_at") or utc_now_iso()),
        )


@dataclass(slots=True)
class EvidenceSource:
    """One discovered web result; unique per (run_id, url)."""

    run_id: str
    title: str
    url: str
    snippet: str = ""
    full_content: str | None = None
    relevance_score: float = 0.5
    axe_id: str | None = None
    iteration: int = 1
    provider: str = ""

    def to_row(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "EvidenceSource":
        axe_id = row.get("axe_id")
        return cls(
            run_id=str(row["run_id"]),
            title=str(row.get("title") or ""),
            url=str(row["url"]),
            snippet=str(row.get("snippet") or ""),
            full_content=row.get("full_content"),
            relevance_score=float(row.get("relevance_score") or 0.0),
            axe_id=str(axe_id) if axe_id is not None else None,
            iteration=int(row.get("iteration") or 1),
            provider=str(row.get("provider") or ""),
        )
