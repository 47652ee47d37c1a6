"""
LangGraph workflow orchestration for Research Chat.
Drives a single research session through its lifecycle: topic, clarifying
questions, answers, dual-provider research and completion.
"""

import logging
from typing import Any, Dict, List, Optional

from langgraph.graph import StateGraph, END

from research_chat.database import DatabaseManager
from research_chat.exceptions import SessionClosed, SessionNotFound, ValidationFailure
from research_chat.models import (
    AnswerSubmission, GraphState, ProviderRole, ResearchSession, SessionStatus, StepResult, SynthesizedReport,
    TurnKind, NO_ANSWER_PLACEHOLDER,
)
from research_chat.nodes import (
    record_input_node,
    clarify_node,
    present_questions_node,
    acknowledge_node,
    research_fan_out_node,
    normalize_documents_node,
    record_documents_node,
    record_failure_node,
)
from research_chat.providers import ProviderGateway
from research_chat.synthesis import ReportSynthesizer, sections_from_turns

logger = logging.getLogger(__name__)


class ResearchSessionMachine:
    """Session state machine built on a LangGraph StateGraph."""

    def __init__(self, gateway: ProviderGateway, store: DatabaseManager, synthesizer: Optional[ReportSynthesizer] = None):
        self.gateway = gateway
        self.store = store
        self.synthesizer = synthesizer or ReportSynthesizer(gateway.summarizer)
        self.graph = None
        self._build_graph()

    def _build_graph(self):
        """Build the LangGraph workflow."""
        workflow = StateGraph(GraphState)

        # Add nodes
        workflow.add_node("record_input", record_input_node)
        workflow.add_node("clarify", clarify_node)
        workflow.add_node("present_questions", present_questions_node)
        workflow.add_node("acknowledge", acknowledge_node)
        workflow.add_node("research_fan_out", research_fan_out_node)
        workflow.add_node("normalize_documents", normalize_documents_node)
        workflow.add_node("record_documents", record_documents_node)
        workflow.add_node("record_failure", record_failure_node)

        # Set entry and edges
        workflow.set_entry_point("record_input")
        workflow.add_edge("present_questions", END)
        workflow.add_edge("acknowledge", END)
        workflow.add_edge("record_documents", END)
        workflow.add_edge("record_failure", END)

        # Add conditional transitions
        workflow.add_conditional_edges(
            "record_input",
            self._route_input,
            {
                "clarify": "clarify",
                "acknowledge": "acknowledge",
                "research": "research_fan_out",
            }
        )
        workflow.add_conditional_edges(
            "clarify",
            self._after_clarify,
            {"present": "present_questions", "fail": "record_failure"}
        )
        workflow.add_conditional_edges(
            "research_fan_out",
            self._after_research,
            {"normalize": "normalize_documents", "fail": "record_failure"}
        )
        workflow.add_conditional_edges(
            "normalize_documents",
            self._after_normalize,
            {"record": "record_documents", "fail": "record_failure"}
        )

        self.graph = workflow.compile()

    def _route_input(self, state: GraphState) -> str:
        """Topics go to clarification; only the final answer triggers research."""
        state = GraphState.model_validate(state)
        if state.step == "topic":
            return "clarify"
        return "research" if state.final_answer else "acknowledge"

    def _after_clarify(self, state: GraphState) -> str:
        state = GraphState.model_validate(state)
        return "present" if state.question_set is not None else "fail"

    def _after_research(self, state: GraphState) -> str:
        state = GraphState.model_validate(state)
        return "normalize" if state.primary_result and state.primary_result.success else "fail"

    def _after_normalize(self, state: GraphState) -> str:
        state = GraphState.model_validate(state)
        return "record" if state.primary_document else "fail"

    # --- Preconditions ---

    async def _load_open_session(self, session_id: str, owner_id: Optional[str]) -> ResearchSession:
        session = await self.store.get_session(session_id, owner_id)
        if session is None:
            raise SessionNotFound(f"Session {session_id} not found")
        if session.status.is_terminal:
            logger.info(f"Rejected transition on session {session_id} in state {session.status.value}")
            raise SessionClosed(session_id, session.status.value)
        return session

    @staticmethod
    def _validate_submission(submission: AnswerSubmission) -> List[str]:
        """Check index alignment and return the full answer list including this answer."""
        if not submission.answer or not submission.answer.strip():
            raise ValidationFailure("Answer is required")
        if submission.question_index >= submission.total_questions:
            raise ValidationFailure("Question index is out of range")
        if len(submission.questions) != submission.total_questions:
            raise ValidationFailure("Question count does not match total_questions")
        if len(submission.answers) > submission.question_index:
            raise ValidationFailure("Answers extend beyond the current question")

        earlier = list(submission.answers) + [NO_ANSWER_PLACEHOLDER] * (submission.question_index - len(submission.answers))
        return earlier + [submission.answer.strip()]

    # --- Transitions ---

    async def _run(self, initial_state: Dict[str, Any]) -> StepResult:
        config_dict = {"configurable": {"gateway": self.gateway, "store": self.store}}
        final_state = GraphState.model_validate(await self.graph.ainvoke(initial_state, config=config_dict))

        return StepResult(
            session_id=final_state.session_id,
            status=final_state.status,
            message_type=final_state.message_type,
            response=final_state.response,
            title=final_state.title,
            questions=final_state.questions if final_state.message_type == "clarifying_questions" else [],
            question_set=final_state.question_set if final_state.message_type == "clarifying_questions" else None,
            primary_document=final_state.primary_document,
            secondary_document=final_state.secondary_document,
        )

    async def submit_topic(self, session_id: str, topic: str, owner_id: Optional[str] = None) -> StepResult:
        """Record a topic and generate the clarifying questions."""
        session = await self._load_open_session(session_id, owner_id)
        if session.status != SessionStatus.OPEN:
            raise ValidationFailure("A topic has already been submitted for this session")
        if not topic or not topic.strip():
            raise ValidationFailure("Message is required")

        logger.info(f"Session {session_id}: topic submitted")
        return await self._run({"session_id": session_id, "step": "topic", "topic": topic.strip()})

    async def submit_answer(self, session_id: str, submission: AnswerSubmission, owner_id: Optional[str] = None) -> StepResult:
        """Record one answer; the final answer triggers dual-provider research."""
        session = await self._load_open_session(session_id, owner_id)
        if session.status != SessionStatus.AWAITING_ANSWERS:
            raise ValidationFailure("This session is not waiting for answers")
        answers = self._validate_submission(submission)

        logger.info(f"Session {session_id}: answer {submission.question_index + 1} of {submission.total_questions} submitted")
        return await self._run({
            "session_id": session_id,
            "step": "answer",
            "topic": submission.original_topic,
            "answer": submission.answer.strip(),
            "question_index": submission.question_index,
            "total_questions": submission.total_questions,
            "questions": list(submission.questions),
            "answers": answers,
            "final_answer": submission.is_last,
        })

    async def build_report(self, session_id: str, owner_id: Optional[str] = None) -> SynthesizedReport:
        """Synthesize the report for a completed session from its tagged turns."""
        session = await self.store.get_session(session_id, owner_id)
        if session is None:
            raise SessionNotFound(f"Session {session_id} not found")
        if session.status != SessionStatus.COMPLETED:
            raise ValidationFailure("Research is not complete for this session")

        turns = await self.store.list_turns(session_id)
        sections = sections_from_turns(turns)
        if not sections or sections[0].role != ProviderRole.PRIMARY:
            raise ValidationFailure("No research documents found for this session")

        primary = sections[0]
        secondary = sections[1] if len(sections) > 1 else None
        topic = next((turn.content for turn in turns if turn.kind == TurnKind.TOPIC), session.title)
        return await self.synthesizer.synthesize(primary, secondary, topic, session_id=session_id)
