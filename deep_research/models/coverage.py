from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from deep_research.models.research_plan import coerce_text_list

NEUTRAL_COVERAGE_SCORE = 80


class IncompleteAxis(BaseModel):
    axis_id: str
    gap_description: str = ""
    new_queries: list[str] = []

    @field_validator("axis_id", mode="before")
    @classmethod
    def _axis_id_to_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(int(value))
        return value

    @field_validator("new_queries", mode="before")
    @classmethod
    def _queries_list(cls, value: Any) -> list[str]:
        return coerce_text_list(value)


class CoverageVerdict(BaseModel):
    coverage_score: int = 0
    sufficient: bool = False
    incomplete_axes: list[IncompleteAxis] = Field(default_factory=list)
    justification: str = ""

    @field_validator("coverage_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> int:
        try:
            score = int(float(value))
        except (TypeError, ValueError):
            return 0
        return max(0, min(score, 100))

    @classmethod
    def fail_open(cls, reason: str) -> "CoverageVerdict":
        """Verdict used when the judge cannot answer: stop collecting."""
        return cls(
            coverage_score=NEUTRAL_COVERAGE_SCORE,
            sufficient=True,
            incomplete_axes=[],
            justification=reason,
        )
