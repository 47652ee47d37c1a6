"""
Unit tests for the individual LangGraph nodes.
"""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from research_chat.models import (
    ClarifyingQuestionSet, GraphState, ProviderResult, ProviderRole, SessionStatus, TitleAndQuestions, TurnKind, TurnRole,
    FALLBACK_TITLE, NO_ANSWER_PLACEHOLDER,
)
from research_chat.nodes import (
    APOLOGY_MESSAGE,
    acknowledge_node,
    clarify_node,
    format_questions_message,
    normalize_documents_node,
    present_questions_node,
    record_documents_node,
    record_failure_node,
    record_input_node,
    research_fan_out_node,
)
from tests.conftest import CRICKET_QUESTIONS, PRIMARY_RAW, SECONDARY_RAW


@pytest.fixture
def mock_store():
    store = Mock()
    store.add_turn = AsyncMock()
    store.update_title = AsyncMock()
    store.update_status = AsyncMock()
    store.mark_completed = AsyncMock()
    store.mark_errored = AsyncMock()
    return store


@pytest.fixture
def run_config(gateway, mock_store):
    return {"configurable": {"gateway": gateway, "store": mock_store}}


def state(**overrides):
    values = {"session_id": "s-1", "step": "answer", "topic": "cricket"}
    values.update(overrides)
    return GraphState(**values).model_dump(mode="json")


def test_format_questions_message():
    message = format_questions_message(["First?", "Second?"])

    assert message.startswith("I'd like to help you refine your research topic.")
    assert "1. First?\n\n2. Second?" in message
    assert message.endswith("Please answer these questions one by one, and I'll do a comprehensive research for you.")


@pytest.mark.asyncio
async def test_record_input_node_topic(run_config, mock_store):
    result = await record_input_node(state(step="topic"), run_config)

    turn = mock_store.add_turn.call_args.args[0]
    assert turn.role == TurnRole.USER
    assert turn.kind == TurnKind.TOPIC
    assert turn.content == "cricket"
    assert result["current_step"] == "record_input"


@pytest.mark.asyncio
async def test_record_input_node_answer(run_config, mock_store):
    await record_input_node(state(answer="1990s"), run_config)

    turn = mock_store.add_turn.call_args.args[0]
    assert turn.kind == TurnKind.ANSWER
    assert turn.content == "1990s"


@pytest.mark.asyncio
async def test_clarify_node_records_failure(run_config, gateway):
    gateway.primary.generate_title_and_questions.side_effect = RuntimeError("boom")

    result = await clarify_node(state(step="topic"), run_config)

    assert result["clarifying"] is None
    assert result["question_set"] is None
    assert result["errors"] == ["openai failed during clarify"]


@pytest.mark.asyncio
async def test_clarify_node_builds_question_set(run_config):
    result = await clarify_node(state(step="topic"), run_config)

    assert result["question_set"] == {"original_topic": "cricket", "questions": CRICKET_QUESTIONS}
    assert result["errors"] == []


@pytest.mark.asyncio
async def test_clarify_node_rejects_out_of_range_question_count(run_config, gateway):
    gateway.primary.generate_title_and_questions.return_value = TitleAndQuestions(
        success=True, provider="openai", title="Cricket...", questions=["1?", "2?", "3?", "4?", "5?"]
    )

    result = await clarify_node(state(step="topic"), run_config)

    assert result["question_set"] is None
    assert result["errors"] == ["openai failed during clarify"]


@pytest.mark.asyncio
async def test_present_questions_node(run_config, mock_store):
    clarifying = TitleAndQuestions(success=True, provider="openai", title="Cricket...", questions=CRICKET_QUESTIONS)
    question_set = ClarifyingQuestionSet(original_topic="cricket", questions=CRICKET_QUESTIONS)

    result = await present_questions_node(
        state(step="topic", clarifying=clarifying, question_set=question_set), run_config
    )

    mock_store.update_title.assert_awaited_once_with("s-1", "Cricket...")
    mock_store.update_status.assert_awaited_once_with("s-1", SessionStatus.AWAITING_ANSWERS)
    turn = mock_store.add_turn.call_args.args[0]
    assert turn.kind == TurnKind.CLARIFYING_QUESTIONS
    assert result["questions"] == CRICKET_QUESTIONS
    assert result["message_type"] == "clarifying_questions"
    assert result["status"] == "awaiting_answers"


@pytest.mark.asyncio
async def test_acknowledge_node(run_config, mock_store):
    result = await acknowledge_node(state(), run_config)

    assert mock_store.add_turn.call_args.args[0].kind == TurnKind.ACKNOWLEDGMENT
    assert result["message_type"] == "acknowledgment"


@pytest.mark.asyncio
async def test_research_fan_out_pads_answers(run_config, gateway):
    result = await research_fan_out_node(
        state(questions=CRICKET_QUESTIONS, answers=["Test cricket"]), run_config
    )

    expected = ["Test cricket", NO_ANSWER_PLACEHOLDER, NO_ANSWER_PLACEHOLDER]
    gateway.primary.generate_research_document.assert_awaited_once_with("cricket", CRICKET_QUESTIONS, expected)
    assert result["primary_result"]["success"] is True
    assert result["secondary_result"]["success"] is True
    assert result["errors"] == []


@pytest.mark.asyncio
async def test_research_fan_out_blank_document_is_failure(run_config, gateway):
    gateway.primary.generate_research_document.return_value = ProviderResult(
        success=True, provider="openai", content="   "
    )

    result = await research_fan_out_node(state(questions=CRICKET_QUESTIONS), run_config)

    assert result["primary_result"]["success"] is False
    assert result["errors"] == ["openai failed during research"]


@pytest.mark.asyncio
async def test_research_fan_out_dispatch_failure_fails_all(run_config):
    with patch("research_chat.nodes.asyncio.gather", side_effect=RuntimeError("loop closed")):
        result = await research_fan_out_node(state(questions=CRICKET_QUESTIONS), run_config)

    assert result["primary_result"]["success"] is False
    assert result["secondary_result"]["success"] is False
    assert result["primary_result"]["error"] == "loop closed"


@pytest.mark.asyncio
async def test_normalize_documents_node(run_config):
    result = await normalize_documents_node(state(
        primary_result=ProviderResult(success=True, provider="openai", content=PRIMARY_RAW),
        secondary_result=ProviderResult(success=True, provider="gemini", content=SECONDARY_RAW),
    ), run_config)

    assert result["primary_document"].startswith("# ChatGPT (OpenAI) Research")
    assert result["secondary_document"].startswith("# Gemini (Google) Research")


@pytest.mark.asyncio
async def test_normalize_documents_node_skips_failed_secondary(run_config):
    result = await normalize_documents_node(state(
        primary_result=ProviderResult(success=True, provider="openai", content=PRIMARY_RAW),
        secondary_result=ProviderResult(success=False, provider="gemini", error="quota"),
    ), run_config)

    assert result["secondary_document"] is None


@pytest.mark.asyncio
async def test_record_documents_node_tags_turns(run_config, mock_store):
    result = await record_documents_node(
        state(primary_document="# A Research\n\nx", secondary_document="# B Research\n\ny"), run_config
    )

    turns = [call.args[0] for call in mock_store.add_turn.call_args_list]
    assert [(t.provider, t.provider_role) for t in turns] == [
        ("openai", ProviderRole.PRIMARY),
        ("gemini", ProviderRole.SECONDARY),
    ]
    mock_store.mark_completed.assert_awaited_once_with("s-1")
    assert result["status"] == "completed"


@pytest.mark.asyncio
async def test_record_failure_node_on_topic_sets_placeholder_title(run_config, mock_store):
    result = await record_failure_node(state(step="topic"), run_config)

    assert mock_store.add_turn.call_args.args[0].content == APOLOGY_MESSAGE
    mock_store.update_title.assert_awaited_once_with("s-1", FALLBACK_TITLE)
    mock_store.mark_errored.assert_awaited_once_with("s-1")
    assert result["status"] == "errored"
    assert result["message_type"] == "error"


@pytest.mark.asyncio
async def test_record_failure_node_on_answer_keeps_title(run_config, mock_store):
    result = await record_failure_node(state(primary_document="partial", secondary_document="doc"), run_config)

    mock_store.update_title.assert_not_awaited()
    assert result["primary_document"] is None
    assert result["secondary_document"] is None
