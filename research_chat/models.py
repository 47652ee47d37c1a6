"""
Pydantic models for Research Chat.
Provides type safety and schema validation for sessions, turns, provider results and reports.
"""

from datetime import datetime
from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


NO_ANSWER_PLACEHOLDER = "No answer provided"
FALLBACK_TITLE = "Research Topic..."
DEFAULT_SESSION_TITLE = "New Session"


class SessionStatus(str, Enum):
    """Lifecycle states of a research session."""
    OPEN = "open"
    AWAITING_ANSWERS = "awaiting_answers"
    COMPLETED = "completed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ERRORED)


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TurnKind(str, Enum):
    TOPIC = "topic"
    CLARIFYING_QUESTIONS = "clarifying_questions"
    ANSWER = "answer"
    ACKNOWLEDGMENT = "acknowledgment"
    RESEARCH_DOCUMENT = "research_document"
    APOLOGY = "apology"


class ProviderRole(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ResearchSession(BaseModel):
    """One end-to-end research interaction."""
    id: str = Field(..., description="Session identifier")
    owner_id: str = Field(..., description="Owning user identifier")
    title: str = Field(default=DEFAULT_SESSION_TITLE, description="Session title")
    status: SessionStatus = Field(default=SessionStatus.OPEN)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Turn(BaseModel):
    """A single persisted message in a session."""
    id: Optional[int] = None
    session_id: str
    role: TurnRole
    kind: TurnKind
    content: str
    provider: Optional[str] = Field(None, description="Provider identity for research documents")
    provider_role: Optional[ProviderRole] = Field(None, description="Primary or secondary section")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class UserProfile(BaseModel):
    """User attributes the core needs: delivery address and quota tier."""
    id: str
    email: Optional[str] = None
    is_premium: bool = False


class ClarifyingQuestionSet(BaseModel):
    """Questions produced once per session from the original topic."""
    model_config = ConfigDict(frozen=True)

    original_topic: str = Field(..., min_length=1)
    questions: List[str] = Field(..., min_length=2, max_length=4)


class AnswerBatch(BaseModel):
    """Answers aligned by index with the clarifying questions."""
    questions: List[str]
    answers: List[str] = Field(default_factory=list)

    @field_validator("answers")
    @classmethod
    def fill_missing_answers(cls, v: List[str]) -> List[str]:
        """Blank answers are recorded as an explicit placeholder."""
        return [a.strip() if a and a.strip() else NO_ANSWER_PLACEHOLDER for a in v]

    @model_validator(mode="after")
    def check_alignment(self) -> "AnswerBatch":
        if len(self.answers) > len(self.questions):
            raise ValueError("More answers than clarifying questions")
        return self

    def pairs(self) -> List[tuple]:
        """(question, answer) pairs, padding unanswered questions with the placeholder."""
        return [
            (question, self.answers[i] if i < len(self.answers) else NO_ANSWER_PLACEHOLDER)
            for i, question in enumerate(self.questions)
        ]


class AnswerSubmission(BaseModel):
    """One user answer plus the full question/answer context so far."""
    answer: str = Field(..., description="Answer to the question at question_index")
    question_index: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=1)
    original_topic: str = Field(..., min_length=1)
    questions: List[str] = Field(default_factory=list)
    answers: List[str] = Field(default_factory=list, description="Answers collected before this one")

    @property
    def is_last(self) -> bool:
        return self.question_index >= self.total_questions - 1


class ProviderResult(BaseModel):
    """Outcome of a single provider document or summary call."""
    success: bool
    provider: str
    content: Optional[str] = None
    error: Optional[str] = None


class TitleAndQuestions(BaseModel):
    """Outcome of title and clarifying question generation."""
    success: bool
    provider: str
    title: str = FALLBACK_TITLE
    questions: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class ReportSection(BaseModel):
    """A normalized document attributed to one provider."""
    model_config = ConfigDict(frozen=True)

    role: ProviderRole
    provider: str
    content: str


class SynthesizedReport(BaseModel):
    """Combined primary/secondary research with a short summary."""
    model_config = ConfigDict(frozen=True)

    topic: str
    sections: List[ReportSection] = Field(..., min_length=1, max_length=2)
    combined: str
    summary: str
    summary_source: str = Field(..., description="'provider' or 'fallback'")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def primary(self) -> ReportSection:
        return self.sections[0]

    @property
    def secondary(self) -> Optional[ReportSection]:
        return self.sections[1] if len(self.sections) > 1 else None


class DeliveryReceipt(BaseModel):
    """Opaque delivery acknowledgement."""
    delivered: bool
    receipt_id: Optional[str] = None
    destination: str


class StepResult(BaseModel):
    """What a state-machine transition reports back to the caller."""
    session_id: str
    status: SessionStatus
    message_type: str = Field(..., description="clarifying_questions, acknowledgment, research_documents or error")
    response: Optional[str] = None
    title: Optional[str] = None
    questions: List[str] = Field(default_factory=list)
    question_set: Optional[ClarifyingQuestionSet] = None
    primary_document: Optional[str] = None
    secondary_document: Optional[str] = None


class GraphState(BaseModel):
    """State object for the LangGraph session workflow."""
    # Input parameters
    session_id: str
    step: str = Field(..., description="'topic' or 'answer'")
    topic: str = ""
    answer: Optional[str] = None
    question_index: int = 0
    total_questions: int = 0
    questions: List[str] = Field(default_factory=list)
    answers: List[str] = Field(default_factory=list)
    final_answer: bool = False

    # Workflow state
    title: Optional[str] = None
    clarifying: Optional[TitleAndQuestions] = None
    question_set: Optional[ClarifyingQuestionSet] = None
    primary_result: Optional[ProviderResult] = None
    secondary_result: Optional[ProviderResult] = None
    primary_document: Optional[str] = None
    secondary_document: Optional[str] = None

    # Execution metadata
    status: Optional[SessionStatus] = None
    message_type: Optional[str] = None
    response: Optional[str] = None
    current_step: str = Field(default="initialization")
    errors: List[str] = Field(default_factory=list)


# --- Request models for the HTTP layer ---

class CreateSessionRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=200, examples=["Cricket"])


class TopicRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000, examples=["cricket"])


class UserProfileRequest(BaseModel):
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", examples=["reader@example.com"])


class UsageReport(BaseModel):
    today_count: int
    max_sessions: int
    is_premium: bool
