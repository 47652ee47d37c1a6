"""
Tests for Pydantic models.
"""

import pytest
from pydantic import ValidationError

from research_chat.models import (
    AnswerBatch, AnswerSubmission, ClarifyingQuestionSet, GraphState, ProviderRole, ReportSection,
    SessionStatus, SynthesizedReport, TopicRequest, UserProfileRequest,
    NO_ANSWER_PLACEHOLDER,
)


class TestSessionStatus:

    @pytest.mark.parametrize("status,terminal", [
        (SessionStatus.OPEN, False),
        (SessionStatus.AWAITING_ANSWERS, False),
        (SessionStatus.COMPLETED, True),
        (SessionStatus.ERRORED, True),
    ])
    def test_is_terminal(self, status, terminal):
        assert status.is_terminal is terminal


class TestClarifyingQuestionSet:

    def test_valid(self):
        qs = ClarifyingQuestionSet(original_topic="cricket", questions=["a?", "b?"])
        assert len(qs.questions) == 2

    @pytest.mark.parametrize("questions", [["only?"], ["1", "2", "3", "4", "5"]])
    def test_question_count_bounds(self, questions):
        with pytest.raises(ValidationError):
            ClarifyingQuestionSet(original_topic="cricket", questions=questions)

    def test_frozen(self):
        qs = ClarifyingQuestionSet(original_topic="cricket", questions=["a?", "b?"])
        with pytest.raises(ValidationError):
            qs.original_topic = "football"


class TestAnswerBatch:

    def test_blank_answers_become_placeholder(self):
        batch = AnswerBatch(questions=["a?", "b?", "c?"], answers=["yes", "  ", ""])
        assert batch.answers == ["yes", NO_ANSWER_PLACEHOLDER, NO_ANSWER_PLACEHOLDER]

    def test_pairs_pad_missing_answers(self):
        batch = AnswerBatch(questions=["a?", "b?"], answers=["yes"])
        assert batch.pairs() == [("a?", "yes"), ("b?", NO_ANSWER_PLACEHOLDER)]

    def test_more_answers_than_questions(self):
        with pytest.raises(ValidationError):
            AnswerBatch(questions=["a?"], answers=["1", "2"])


class TestAnswerSubmission:

    def test_is_last(self):
        common = {"answer": "x", "total_questions": 3, "original_topic": "cricket"}
        assert AnswerSubmission(question_index=2, **common).is_last is True
        assert AnswerSubmission(question_index=1, **common).is_last is False

    def test_negative_index_rejected(self):
        with pytest.raises(ValidationError):
            AnswerSubmission(answer="x", question_index=-1, total_questions=3, original_topic="cricket")


class TestSynthesizedReport:

    def section(self, role):
        return ReportSection(role=role, provider=role.value, content=f"# {role.value}")

    def test_accessors(self):
        report = SynthesizedReport(
            topic="Cricket",
            sections=[self.section(ProviderRole.PRIMARY), self.section(ProviderRole.SECONDARY)],
            combined="x",
            summary="y",
            summary_source="fallback",
        )
        assert report.primary.role == ProviderRole.PRIMARY
        assert report.secondary.role == ProviderRole.SECONDARY

    def test_requires_one_or_two_sections(self):
        with pytest.raises(ValidationError):
            SynthesizedReport(topic="Cricket", sections=[], combined="", summary="", summary_source="fallback")


class TestRequestModels:

    def test_topic_required(self):
        with pytest.raises(ValidationError):
            TopicRequest(message="")

    def test_email_pattern(self):
        assert UserProfileRequest(email="a@example.com").email == "a@example.com"
        with pytest.raises(ValidationError):
            UserProfileRequest(email="nope")


def test_graph_state_json_dump():
    state = GraphState(session_id="s-1", step="topic", status=SessionStatus.OPEN)
    data = state.model_dump(mode="json")

    assert data["status"] == "open"
    assert data["current_step"] == "initialization"
    assert GraphState.model_validate(data) == state
