"""Report synthesis from collected evidence."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from loguru import logger

from deep_research.config import settings
from deep_research.models.run import EvidenceSource
from deep_research.research_core.models.interfaces import TextGenerator
from deep_research.services.prompt_store import render_prompt

EXECUTIVE_SUMMARY_MAX_CHARS = 500
# Output below this share of the requested word count is not accepted as a report.
SHORTFALL_RATIO = 0.25

_TITLE_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$", re.MULTILINE)
_SUMMARY_RE = re.compile(
    r"^##\s+(?:Executive Summary|Summary|Synth[eè]se|R[eé]sum[eé])[^\n]*\n(.*?)(?=^#{1,2}\s|\Z)",
    re.IGNORECASE | re.MULTILINE | re.DOTALL,
)


@dataclass(slots=True)
class SynthesisResult:
    report_markdown: str
    report_title: str
    executive_summary: str
    error_message: str | None = None


def extract_title(markdown: str, fallback: str) -> str:
    """First top-level heading of ``markdown``, or ``fallback``."""
    match = _TITLE_RE.search(markdown or "")
    if match and match.group(1).strip():
        return match.group(1).strip()
    return fallback


def extract_executive_summary(markdown: str, max_chars: int = EXECUTIVE_SUMMARY_MAX_CHARS) -> str:
    """Body of the summary section, else the first plain paragraph."""
    text = markdown or ""
    match = _SUMMARY_RE.search(text)
    if match:
        summary = match.group(1).strip()
    else:
        summary = ""
        for block in re.split(r"\n\s*\n", text):
            block = block.strip()
            if block and not block.startswith("#"):
                summary = block
                break
    return summary[:max_chars].strip()


def build_context(sources: list[EvidenceSource], char_budget: int) -> str:
    """Numbered source blocks for the writer, cut at ``char_budget``.

    Numbers follow the evidence order so ``[N]`` citations resolve against
    the persisted source list. Blocks that would overflow the budget are
    dropped whole.
    """
    blocks: list[str] = []
    used = 0
    for index, source in enumerate(sources, start=1):
        if source.full_content:
            body = f"Content:\n{source.full_content}"
        else:
            body = f"Summary: {source.snippet}"
        block = f"[{index}] {source.title}\nURL: {source.url}\n{body}"
        if blocks and used + len(block) > char_budget:
            logger.info(f"Synthesis context truncated at {len(blocks)}/{len(sources)} sources")
            break
        blocks.append(block[:char_budget] if not blocks else block)
        used += len(block) + 5
    return "\n\n---\n\n".join(blocks)


def placeholder_report(query: str, sources: list[EvidenceSource], reason: str) -> str:
    lines = [
        f"# {query}",
        "",
        f"> The report could not be written: {reason}",
        "",
    ]
    if sources:
        lines.append("## Collected sources")
        lines.append("")
        lines.extend(f"- [{i}] [{s.title or s.url}]({s.url})" for i, s in enumerate(sources, start=1))
    else:
        lines.append("No sources were collected for this question.")
    return "\n".join(lines) + "\n"


class ReportSynthesizer:
    def __init__(
        self,
        generator: TextGenerator,
        *,
        context_char_budget: int | None = None,
        min_words: int | None = None,
        language: str | None = None,
        max_tokens: int | None = None,
    ):
        self.generator = generator
        self.context_char_budget = context_char_budget or settings.synthesis_context_char_budget
        self.min_words = min_words or settings.report_min_words
        self.language = language or settings.report_language
        self.max_tokens = max_tokens

    async def synthesize(self, query: str, sources: list[EvidenceSource]) -> SynthesisResult:
        """Write the final report; never raises on provider trouble.

        Without evidence the writer is not called. An empty, failed or far too
        short generation yields a placeholder report listing the collected
        sources. In every degraded case ``error_message`` is set.
        """
        if not sources:
            logger.warning("No evidence collected; writing a placeholder report")
            return self._placeholder(query, sources, "No evidence was collected for this question.")

        prompt = render_prompt(
            "writer.prompt",
            query=query,
            today_iso=date.today().isoformat(),
            sources=build_context(sources, self.context_char_budget),
            language=self.language,
            min_words=self.min_words,
        )

        try:
            markdown = (await self.generator.generate(prompt, max_tokens=self.max_tokens)).strip()
        except Exception as exc:
            logger.error(f"Report generation failed: {exc}")
            return self._placeholder(query, sources, f"Report generation failed: {exc}")

        if not markdown:
            return self._placeholder(query, sources, "Report generation returned no content.")

        word_count = len(markdown.split())
        if word_count < self.min_words * SHORTFALL_RATIO:
            logger.warning(f"Report has {word_count} words, {self.min_words} requested")
            return self._placeholder(
                query,
                sources,
                f"Report generation returned {word_count} words, at least {self.min_words} were requested.",
            )

        error: str | None = None
        if not _TITLE_RE.search(markdown):
            markdown = f"# {query}\n\n{markdown}"
            error = "Report had no top-level heading; the question was used as its title."

        return SynthesisResult(
            report_markdown=markdown,
            report_title=extract_title(markdown, query),
            executive_summary=extract_executive_summary(markdown),
            error_message=error,
        )

    @staticmethod
    def _placeholder(query: str, sources: list[EvidenceSource], reason: str) -> SynthesisResult:
        return SynthesisResult(
            report_markdown=placeholder_report(query, sources, reason),
            report_title=query,
            executive_summary="",
            error_message=reason,
        )
