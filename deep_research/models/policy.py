from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ResearchDepth(StrEnum):
    QUICK = "quick"
    STANDARD = "standard"
    EXHAUSTIVE = "exhaustive"


@dataclass(frozen=True, slots=True)
class DepthPolicy:
    max_iterations: int
    axis_count: int
    results_per_axis: int
    min_coverage: int


DEPTH_POLICIES: dict[ResearchDepth, DepthPolicy] = {
    ResearchDepth.QUICK: DepthPolicy(max_iterations=2, axis_count=3, results_per_axis=3, min_coverage=60),
    ResearchDepth.STANDARD: DepthPolicy(max_iterations=3, axis_count=5, results_per_axis=5, min_coverage=75),
    ResearchDepth.EXHAUSTIVE: DepthPolicy(max_iterations=4, axis_count=7, results_per_axis=8, min_coverage=85),
}


def resolve_depth_policy(depth: str | None) -> DepthPolicy:
    """Map a requested depth onto its policy; unknown values fall back to standard."""
    try:
        key = ResearchDepth((depth or "").lower().strip())
    except ValueError:
        key = ResearchDepth.STANDARD
    return DEPTH_POLICIES[key]
