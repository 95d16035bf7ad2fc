from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class AxisPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def coerce_text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    cleaned: list[str] = []
    for item in value:
        if not isinstance(item, (str, int, float)):
            continue
        text = " ".join(str(item).split()).strip()
        if text:
            cleaned.append(text)
    return cleaned


class Axis(BaseModel):
    """One sub-question of the research plan."""
    id: str  # stable across narrowing so evidence stays attributable
    title: str = ""
    question: str
    keywords: list[str] = []
    priority: AxisPriority = AxisPriority.MEDIUM

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(int(value))
        return value

    @field_validator("keywords", mode="before")
    @classmethod
    def _keywords_list(cls, value: Any) -> list[str]:
        return coerce_text_list(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_lenient(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.lower().strip()
            if lowered in {"high", "medium", "low"}:
                return lowered
        return AxisPriority.MEDIUM

    def search_terms(self) -> str:
        """Whitespace-joined keywords, falling back to the question."""
        return " ".join(self.keywords) if self.keywords else self.question


class ResearchPlan(BaseModel):
    """Framing of a research question: reformulation, objective, scope and axes."""
    reformulation: str = ""
    objective: str = ""
    scope: str = ""
    axes: list[Axis] = Field(default_factory=list)

    @classmethod
    def trivial(cls, query: str) -> "ResearchPlan":
        """Single-axis plan whose question is the query itself."""
        return cls(
            reformulation=query,
            objective="Answer the question",
            scope="",
            axes=[
                Axis(
                    id="1",
                    title="General research",
                    question=query,
                    keywords=[query],
                    priority=AxisPriority.HIGH,
                )
            ],
        )
