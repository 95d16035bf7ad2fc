from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RunEventType(str, Enum):
    SNAPSHOT = "snapshot"
    PROGRESS = "progress"
    SOURCE_ADDED = "source_added"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"


@dataclass
class RunEvent:
    event: RunEventType
    run_id: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.event in (RunEventType.RUN_COMPLETED, RunEventType.RUN_FAILED)
