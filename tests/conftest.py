"""
Test configuration and fixtures for Research Chat.
"""

import pytest
import pytest_asyncio
from typing import List, Optional
from unittest.mock import Mock, AsyncMock

from research_chat.database import DatabaseManager
from research_chat.models import (
    ProviderResult, ProviderRole, ReportSection, SynthesizedReport, TitleAndQuestions
)
from research_chat.providers import ProviderGateway


CRICKET_QUESTIONS = [
    "Are you focusing on a particular team, tournament, or the sport in general?",
    "Do you want to study cricket from a historical, statistical, or cultural perspective?",
    "Which time period should the research cover?",
]

PRIMARY_RAW = """# ChatGPT Research

I'd like to help you with cricket. To provide you with the most relevant research guidance, I have a few clarifying questions. I'll do a comprehensive research for you.

## Executive Summary

Test cricket remains the **longest** format, while *T20* leagues drive revenue.

## Key Findings

1. Viewership grew in [South Asia](https://example.com/asia).
2) Franchise leagues now dominate the calendar."""

SECONDARY_RAW = """## Gemini Research Page

## Overview

Cricket's ***global*** reach keeps expanding.

## Suggested Research Methods

- Interview players

## Trends

- More women's leagues"""


def make_provider(
    name: str,
    display_name: str,
    aliases: Optional[List[str]] = None,
    questions: Optional[List[str]] = None,
    document: Optional[str] = "Findings.",
    summary: Optional[str] = "A short plain summary.",
):
    """Build a provider double with async generation methods."""
    provider = Mock()
    provider.name = name
    provider.display_name = display_name
    provider.header_aliases = [display_name] + (aliases or [])
    provider.generate_title_and_questions = AsyncMock(return_value=TitleAndQuestions(
        success=True, provider=name, title="Cricket Research...", questions=questions or CRICKET_QUESTIONS
    ))
    provider.generate_research_document = AsyncMock(return_value=ProviderResult(
        success=document is not None, provider=name, content=document,
        error=None if document is not None else "Failed to generate research page",
    ))
    provider.summarize_report = AsyncMock(return_value=ProviderResult(
        success=summary is not None, provider=name, content=summary,
    ))
    return provider


@pytest.fixture
def primary_provider():
    return make_provider("openai", "ChatGPT (OpenAI)", ["ChatGPT", "OpenAI"], document=PRIMARY_RAW)


@pytest.fixture
def secondary_provider():
    return make_provider("gemini", "Gemini (Google)", ["Gemini", "Google"], document=SECONDARY_RAW)


@pytest.fixture
def gateway(primary_provider, secondary_provider):
    return ProviderGateway(primary=primary_provider, secondary=secondary_provider, summarizer=secondary_provider)


@pytest_asyncio.fixture
async def store(tmp_path):
    """A fresh SQLite database per test."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await manager.init_db()
    yield manager
    await manager.close()


@pytest.fixture
def sample_report():
    primary = ReportSection(
        role=ProviderRole.PRIMARY,
        provider="openai",
        content="# ChatGPT (OpenAI) Research\n\n## Findings\n\n- Test cricket & T20 <formats>\n- Source (https://example.com/a?x=1&y=2)",
    )
    secondary = ReportSection(
        role=ProviderRole.SECONDARY,
        provider="gemini",
        content="# Gemini (Google) Research\n\n1. First\n2. Second\n\n---\n\n```\ncode <block>\n```",
    )
    return SynthesizedReport(
        topic="Cricket",
        sections=[primary, secondary],
        combined=primary.content + "\n\n---\n\n" + secondary.content,
        summary="Cricket is popular.\n\nLeagues are growing.",
        summary_source="provider",
    )
