from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator


# --- Requests ---


class ResearchRequest(BaseModel):
    run_id: str | None = None
    query: str
    depth: Literal["quick", "standard", "exhaustive"] = "standard"
    mode: Literal["web", "urls", "docs", "mix"] = "web"
    domain_allow_list: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("domain_allow_list", "sites"),
    )
    conversation_id: str | None = None

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("query must not be empty")
        return cleaned

    @field_validator("domain_allow_list")
    @classmethod
    def _clean_domains(cls, value: list[str]) -> list[str]:
        return [d.strip() for d in value if isinstance(d, str) and d.strip()]


# --- Responses ---


class ResearchStartResponse(BaseModel):
    run_id: str
    status: Literal["started"] = "started"


class ResearchRunResponse(BaseModel):
    id: str
    query: str
    depth: str
    mode: str
    status: str
    progress_stage: str | None
    progress_percent: int
    progress_message: str
    report_markdown: str | None
    report_title: str | None
    executive_summary: str | None
    error_message: str | None
    created_at: str
    updated_at: str


class SourceResponse(BaseModel):
    title: str
    url: str
    snippet: str
    full_content: str | None
    relevance_score: float
    axe_id: str | None
    iteration: int
    provider: str


class SourcesResponse(BaseModel):
    run_id: str
    sources: list[SourceResponse]
