"""
Research Chat - clarify a research topic, then research it with two AI providers

This package drives a research session from a topic to a delivered report, using
LangGraph for the session state machine and LangChain for provider abstraction.

Key Components:
- LangGraph session machine with typed state and modular nodes
- Primary (OpenAI) and secondary (Gemini) providers run concurrently
- Content normalization and combined report synthesis
- PDF rendering and SendGrid email delivery
- FastAPI REST API and CLI interfaces

Usage:
    # CLI
    python -m research_chat.cli research "cricket" --email me@example.com

    # API
    from research_chat import ResearchSessionMachine, ProviderGateway, DatabaseManager, config

    store = DatabaseManager()
    await store.init_db()
    machine = ResearchSessionMachine(ProviderGateway.from_config(config), store)
    session = await store.create_session("user123")
    result = await machine.submit_topic(session.id, "cricket")
"""

__version__ = "1.0.0"

from research_chat.models import (
    AnswerSubmission,
    GraphState,
    ResearchSession,
    SessionStatus,
    StepResult,
    SynthesizedReport,
)
from research_chat.config import config
from research_chat.database import DatabaseManager
from research_chat.providers import ProviderGateway
from research_chat.workflow import ResearchSessionMachine

__all__ = [
    "AnswerSubmission",
    "GraphState",
    "ResearchSession",
    "SessionStatus",
    "StepResult",
    "SynthesizedReport",
    "config",
    "DatabaseManager",
    "ProviderGateway",
    "ResearchSessionMachine",
]
