"""
LangGraph workflow nodes for Research Chat.
Each node is one step of a research session transition. Dependencies (provider
gateway and store) are read from the run config's ``configurable`` mapping.
"""

import asyncio
import logging
from typing import Any, Dict, List, Union

from langchain_core.runnables import RunnableConfig
from pydantic import ValidationError

from research_chat.database import DatabaseManager
from research_chat.models import (
    ClarifyingQuestionSet, GraphState, ProviderResult, ProviderRole, SessionStatus, Turn, TurnKind, TurnRole,
    AnswerBatch, FALLBACK_TITLE,
)
from research_chat.normalizer import normalize
from research_chat.providers import ProviderGateway, ResearchProvider

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "I'm not able to find the answer right now. Please try again."
ACKNOWLEDGMENT_MESSAGE = "Thank you for your answer. Please answer the next question."


def format_questions_message(questions: List[str]) -> str:
    """Assistant turn presenting the clarifying questions."""
    numbered = "\n\n".join(f"{i + 1}. {q}" for i, q in enumerate(questions))
    return (
        "I'd like to help you refine your research topic. To provide you with the most relevant "
        "research guidance, I have a few clarifying questions:\n\n"
        f"{numbered}\n\n"
        "Please answer these questions one by one, and I'll do a comprehensive research for you."
    )


def _gateway(config: RunnableConfig) -> ProviderGateway:
    return config["configurable"]["gateway"]


def _store(config: RunnableConfig) -> DatabaseManager:
    return config["configurable"]["store"]


async def _assistant_turn(store: DatabaseManager, session_id: str, kind: TurnKind, content: str, **tags) -> None:
    await store.add_turn(Turn(session_id=session_id, role=TurnRole.ASSISTANT, kind=kind, content=content, **tags))


def _settle(outcome: Union[ProviderResult, BaseException], provider: ResearchProvider, session_id: str) -> ProviderResult:
    """Convert a gathered outcome into a ProviderResult, logging failures."""
    if isinstance(outcome, BaseException):
        logger.error(f"Session {session_id}: provider {provider.name} raised during research: {outcome}")
        return ProviderResult(success=False, provider=provider.name, error=str(outcome) or type(outcome).__name__)
    if not outcome.success or not (outcome.content or "").strip():
        logger.warning(f"Session {session_id}: provider {provider.name} produced no research document")
        return ProviderResult(success=False, provider=provider.name, error=outcome.error or "empty document")
    return outcome


async def record_input_node(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
    """
    Node 1: Persist the user's topic or answer as a user turn.
    """
    state = GraphState.model_validate(state)
    state.current_step = "record_input"
    logger.info("Executing record_input_node...")

    if state.step == "topic":
        kind, content = TurnKind.TOPIC, state.topic
    else:
        kind, content = TurnKind.ANSWER, state.answer or ""
    await _store(config).add_turn(Turn(session_id=state.session_id, role=TurnRole.USER, kind=kind, content=content))

    return state.model_dump(mode="json")


async def clarify_node(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
    """
    Node 2: Ask the primary provider for a title and clarifying questions.
    """
    state = GraphState.model_validate(state)
    state.current_step = "clarify"
    logger.info("Executing clarify_node...")

    provider = _gateway(config).primary
    try:
        state.clarifying = await provider.generate_title_and_questions(state.topic)
    except Exception as e:
        logger.error(f"Session {state.session_id}: provider {provider.name} raised during clarify: {e}")
        state.clarifying = None

    if state.clarifying is not None and state.clarifying.success:
        try:
            state.question_set = ClarifyingQuestionSet(
                original_topic=state.topic,
                questions=state.clarifying.questions,
            )
        except ValidationError as e:
            logger.error(f"Session {state.session_id}: rejected clarifying questions from {provider.name}: {e}")

    if state.question_set is None:
        state.errors.append(f"{provider.name} failed during clarify")

    return state.model_dump(mode="json")


async def present_questions_node(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
    """
    Node 3: Store the title, list the questions, and wait for answers.
    """
    state = GraphState.model_validate(state)
    state.current_step = "present_questions"
    logger.info("Executing present_questions_node...")

    store = _store(config)
    state.title = state.clarifying.title
    state.questions = list(state.question_set.questions)
    state.response = format_questions_message(state.questions)

    await store.update_title(state.session_id, state.title)
    await store.update_status(state.session_id, SessionStatus.AWAITING_ANSWERS)
    await _assistant_turn(store, state.session_id, TurnKind.CLARIFYING_QUESTIONS, state.response)

    state.status = SessionStatus.AWAITING_ANSWERS
    state.message_type = "clarifying_questions"
    return state.model_dump(mode="json")


async def acknowledge_node(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
    """
    Node 4: Acknowledge a non-final answer.
    """
    state = GraphState.model_validate(state)
    state.current_step = "acknowledge"
    logger.info("Executing acknowledge_node...")

    await _assistant_turn(_store(config), state.session_id, TurnKind.ACKNOWLEDGMENT, ACKNOWLEDGMENT_MESSAGE)

    state.response = ACKNOWLEDGMENT_MESSAGE
    state.status = SessionStatus.AWAITING_ANSWERS
    state.message_type = "acknowledgment"
    return state.model_dump(mode="json")


async def research_fan_out_node(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
    """
    Node 5: Run primary and secondary research generation concurrently.

    A provider exception counts as that provider's failure. If dispatching the
    tasks fails outright, both providers are treated as failed.
    """
    state = GraphState.model_validate(state)
    state.current_step = "research_fan_out"
    logger.info("Executing research_fan_out_node...")

    gateway = _gateway(config)
    primary, secondary = gateway.primary, gateway.secondary
    batch = AnswerBatch(questions=state.questions, answers=state.answers)
    answers = [answer for _, answer in batch.pairs()]

    providers = [primary] + ([secondary] if secondary is not None else [])
    try:
        tasks = [
            asyncio.create_task(p.generate_research_document(state.topic, state.questions, answers))
            for p in providers
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    except Exception as e:
        logger.error(f"Session {state.session_id}: research dispatch failed: {e}")
        outcomes = [e] * len(providers)

    state.primary_result = _settle(outcomes[0], primary, state.session_id)
    if secondary is not None:
        state.secondary_result = _settle(outcomes[1], secondary, state.session_id)

    if not state.primary_result.success:
        state.errors.append(f"{primary.name} failed during research")
    return state.model_dump(mode="json")


async def normalize_documents_node(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
    """
    Node 6: Normalize each successful document under its provider label.
    """
    state = GraphState.model_validate(state)
    state.current_step = "normalize_documents"
    logger.info("Executing normalize_documents_node...")

    gateway = _gateway(config)
    state.primary_document = normalize(
        state.primary_result.content, gateway.primary.display_name, gateway.primary.header_aliases
    ) or None

    if gateway.secondary is not None and state.secondary_result and state.secondary_result.success:
        state.secondary_document = normalize(
            state.secondary_result.content, gateway.secondary.display_name, gateway.secondary.header_aliases
        ) or None
        if state.secondary_document is None:
            logger.warning(f"Session {state.session_id}: provider {gateway.secondary.name} document was empty after normalization")

    if state.primary_document is None:
        state.errors.append(f"{gateway.primary.name} document was empty after normalization")
    return state.model_dump(mode="json")


async def record_documents_node(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
    """
    Node 7: Record one assistant turn per document and complete the session.
    """
    state = GraphState.model_validate(state)
    state.current_step = "record_documents"
    logger.info("Executing record_documents_node...")

    gateway, store = _gateway(config), _store(config)
    await _assistant_turn(
        store, state.session_id, TurnKind.RESEARCH_DOCUMENT, state.primary_document,
        provider=gateway.primary.name, provider_role=ProviderRole.PRIMARY,
    )
    if state.secondary_document:
        await _assistant_turn(
            store, state.session_id, TurnKind.RESEARCH_DOCUMENT, state.secondary_document,
            provider=gateway.secondary.name, provider_role=ProviderRole.SECONDARY,
        )
    await store.mark_completed(state.session_id)

    state.status = SessionStatus.COMPLETED
    state.message_type = "research_documents"
    return state.model_dump(mode="json")


async def record_failure_node(state: Dict[str, Any], config: RunnableConfig) -> Dict[str, Any]:
    """
    Node 8: Record the apology turn and move the session to errored.
    """
    state = GraphState.model_validate(state)
    state.current_step = "record_failure"
    logger.info("Executing record_failure_node...")

    store = _store(config)
    await _assistant_turn(store, state.session_id, TurnKind.APOLOGY, APOLOGY_MESSAGE)
    if state.step == "topic":
        state.title = FALLBACK_TITLE
        await store.update_title(state.session_id, FALLBACK_TITLE)
    await store.mark_errored(state.session_id)

    logger.error(f"Session {state.session_id} errored at step '{state.step}': {'; '.join(state.errors)}")
    state.response = APOLOGY_MESSAGE
    state.status = SessionStatus.ERRORED
    state.message_type = "error"
    state.primary_document = None
    state.secondary_document = None
    return state.model_dump(mode="json")
