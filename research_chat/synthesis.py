"""
Report synthesis: combine normalized provider documents and summarize them.
"""

import logging
import re
from typing import List, Optional, Sequence

from research_chat.config import SummaryConfig, config
from research_chat.models import (
    ProviderRole, ReportSection, SynthesizedReport, Turn, TurnKind
)
from research_chat.normalizer import strip_emphasis
from research_chat.providers import ResearchProvider

logger = logging.getLogger(__name__)

SECTION_DIVIDER = "\n\n---\n\n"
ELLIPSIS = "…"

_LINE_MARKERS = re.compile(r"^[ \t]*(?:#{1,6}|[-+>]|\d+[.)])[ \t]+", re.MULTILINE)
_RULES = re.compile(r"^[ \t]*-{3,}[ \t]*$", re.MULTILINE)
_LEFTOVER_MARKUP = re.compile(r"[#`>]")
_WHITESPACE = re.compile(r"\s+")


def fallback_summary(text: str, limit: int = 650, cut: int = 640) -> str:
    """Deterministic extractive summary used when the summarizer is unavailable."""
    flat = strip_emphasis(text or "")
    flat = _RULES.sub(" ", flat)
    flat = _LINE_MARKERS.sub("", flat)
    flat = _LEFTOVER_MARKUP.sub("", flat)
    flat = _WHITESPACE.sub(" ", flat).strip()
    if len(flat) > limit:
        return flat[:cut].rstrip() + ELLIPSIS
    return flat


def sections_from_turns(turns: Sequence[Turn]) -> List[ReportSection]:
    """Rebuild report sections from provider-tagged research document turns.

    The latest document per role wins; the primary section always comes first.
    """
    latest = {}
    for turn in turns:
        if turn.kind != TurnKind.RESEARCH_DOCUMENT or turn.provider_role is None:
            continue
        latest[turn.provider_role] = ReportSection(
            role=turn.provider_role,
            provider=turn.provider or turn.provider_role.value,
            content=turn.content,
        )

    sections = []
    if ProviderRole.PRIMARY in latest:
        sections.append(latest[ProviderRole.PRIMARY])
    if ProviderRole.SECONDARY in latest:
        sections.append(latest[ProviderRole.SECONDARY])
    return sections


class ReportSynthesizer:
    """Combines primary and secondary sections and produces a short summary."""

    def __init__(self, summarizer: Optional[ResearchProvider] = None, summary_config: Optional[SummaryConfig] = None):
        self.summarizer = summarizer
        self.summary_config = summary_config or config.summary

    async def synthesize(
        self,
        primary: ReportSection,
        secondary: Optional[ReportSection],
        topic: str,
        session_id: Optional[str] = None,
    ) -> SynthesizedReport:
        sections = [primary] + ([secondary] if secondary is not None and secondary.content else [])
        combined = SECTION_DIVIDER.join(section.content for section in sections)

        summary, source = await self._summarize(combined, session_id)
        return SynthesizedReport(
            topic=topic,
            sections=sections,
            combined=combined,
            summary=summary,
            summary_source=source,
        )

    async def _summarize(self, combined: str, session_id: Optional[str] = None):
        if self.summarizer is not None:
            try:
                result = await self.summarizer.summarize_report(combined)
                if result.success and result.content and result.content.strip():
                    return strip_emphasis(result.content).strip(), "provider"
                logger.warning(f"Session {session_id}: summarizer {self.summarizer.name} returned no summary; using fallback")
            except Exception as e:
                logger.error(f"Session {session_id}: summarizer {self.summarizer.name} failed during summarize: {e}")

        return fallback_summary(
            combined,
            limit=self.summary_config.fallback_limit,
            cut=self.summary_config.fallback_cut,
        ), "fallback"
