"""Text generation over an OpenAI-compatible gateway (OpenRouter by default)."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Literal

from deep_research.config import settings
from deep_research.exceptions import ProviderTransientError
from deep_research.services import logger as log_service

Role = Literal["planner", "judge", "writer"]


def get_client() -> Any:
    """Get an AsyncOpenAI client pointed at the configured gateway."""
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )


def get_model(role: Role | None = None) -> str:
    """Get the model id for a role, honouring per-role and global overrides."""
    if role is not None:
        override = getattr(settings, f"{role}_model", "")
        if isinstance(override, str) and override.strip():
            return override.strip()
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


def _temperature_for_model(model: str) -> float:
    # Some GPT-5-compatible gateways reject anything but the default temperature.
    if "gpt-5" in (model or "").lower():
        return 1
    return 0.3


_client: Any | None = None


def client() -> Any:
    """Get or create the shared gateway client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client


class OpenRouterTextGenerator:
    """`Generate(prompt, maxTokens) -> text` backed by chat completions.

    One instance per role so the planner, judge and writer can run on
    different models while sharing a single HTTP client.
    """

    def __init__(
        self,
        role: Role,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        timeout_seconds: float | None = None,
        openai_client: Any | None = None,
    ):
        self.role = role
        self.model = model or get_model(role)
        self.default_max_tokens = max_tokens or int(getattr(settings, f"{role}_max_tokens"))
        self.timeout_seconds = timeout_seconds or settings.provider_timeout_seconds
        self._client = openai_client

    async def generate(self, prompt: str, max_tokens: int | None = None) -> str:
        active_client = self._client or client()
        t0 = time.monotonic()
        try:
            response = await asyncio.wait_for(
                active_client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=max_tokens or self.default_max_tokens,
                    temperature=_temperature_for_model(self.model),
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            self._log(t0, error="timeout")
            raise ProviderTransientError(
                "llm", f"{self.role} generation timed out after {self.timeout_seconds}s"
            ) from exc
        except Exception as exc:
            self._log(t0, error=str(exc))
            raise ProviderTransientError("llm", f"{self.role} generation failed: {exc}") from exc

        usage = getattr(response, "usage", None)
        self._log(
            t0,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        text = getattr(choices[0].message, "content", None)
        return text.strip() if isinstance(text, str) else ""

    def _log(
        self,
        started_at: float,
        *,
        input_tokens: int = 0,
        output_tokens: int = 0,
        error: str | None = None,
    ) -> None:
        log_service.log_llm_call(
            model=self.model,
            caller=f"pipeline.{self.role}",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            duration_ms=int((time.monotonic() - started_at) * 1000),
            status="error" if error else "success",
            error=error,
        )
