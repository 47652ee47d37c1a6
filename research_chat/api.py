"""
FastAPI REST API for Research Chat.
Provides HTTP endpoints for sessions, the clarify/answer/research flow and report delivery.
"""

# IMPORTANT: Load environment variables from .env file at the very top
from dotenv import load_dotenv
load_dotenv()

# --- Standard Library Imports ---
import logging
from datetime import datetime
from typing import Dict, Any, List

# --- Third-Party Imports ---
import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# --- Local Application Imports ---
from research_chat import quota
from research_chat.config import config
from research_chat.database import DatabaseManager
from research_chat.delivery import DeliveryAdapter, SendGridEmailDelivery
from research_chat.exceptions import (
    ResearchChatError, ValidationFailure, SessionNotFound, SessionClosed, QuotaExceeded, DeliveryFailure
)
from research_chat.models import (
    AnswerSubmission, CreateSessionRequest, ResearchSession, StepResult, TopicRequest, Turn,
    UsageReport, UserProfile, UserProfileRequest,
)
from research_chat.providers import ProviderGateway
from research_chat.workflow import ResearchSessionMachine

# --- Logging Configuration ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')
logger = logging.getLogger(__name__)

# --- FastAPI App Initialization ---
app = FastAPI(
    title="Research Chat API",
    description="Clarify a research topic, then research it with two providers using LangGraph and LangChain",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    ValidationFailure: status.HTTP_400_BAD_REQUEST,
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    SessionClosed: status.HTTP_400_BAD_REQUEST,
    QuotaExceeded: status.HTTP_403_FORBIDDEN,
    DeliveryFailure: status.HTTP_502_BAD_GATEWAY,
}


@app.exception_handler(ResearchChatError)
async def research_chat_error_handler(request: Request, exc: ResearchChatError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"success": False, "error": str(exc)})


# --- Dependencies ---

def get_store(request: Request) -> DatabaseManager:
    return request.app.state.store


def get_machine(request: Request) -> ResearchSessionMachine:
    return request.app.state.machine


def get_delivery(request: Request) -> DeliveryAdapter:
    return request.app.state.delivery


def current_user(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id.strip()


# --- API Events ---
@app.on_event("startup")
async def startup_event():
    """Initialize database, providers and delivery on startup."""
    try:
        config.validate()
        store = DatabaseManager(config.database.url)
        await store.init_db()
        app.state.store = store
        app.state.machine = ResearchSessionMachine(ProviderGateway.from_config(config), store)
        app.state.delivery = SendGridEmailDelivery.from_config(config.delivery)
        logger.info("✓ Database initialized successfully.")
        logger.info("✓ API server startup complete.")
    except Exception as e:
        logger.error(f"✗ Startup failed: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    store = getattr(app.state, "store", None)
    if store is not None:
        await store.close()
        logger.info("✓ Database connections closed.")


# --- API Endpoints ---
@app.get("/health", summary="Health Check")
async def health_check() -> Dict[str, Any]:
    """Reports which external services are configured."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "services": config.get_available_services(),
    }


@app.put("/users/me", summary="Create or Update Profile")
async def update_profile(
    request: UserProfileRequest,
    user_id: str = Depends(current_user),
    store: DatabaseManager = Depends(get_store),
) -> UserProfile:
    """Sets the delivery email. The premium tier is kept as stored."""
    existing = await store.get_user(user_id)
    return await store.upsert_user(UserProfile(
        id=user_id,
        email=request.email,
        is_premium=bool(existing and existing.is_premium),
    ))


@app.get("/users/me/session-count", summary="Today's Session Usage")
async def session_count(
    user_id: str = Depends(current_user),
    store: DatabaseManager = Depends(get_store),
) -> UsageReport:
    return await quota.usage(store, user_id, config.quota)


@app.get("/sessions", summary="List Sessions")
async def list_sessions(
    user_id: str = Depends(current_user),
    store: DatabaseManager = Depends(get_store),
) -> List[ResearchSession]:
    return await store.list_sessions(user_id)


@app.post("/sessions", status_code=status.HTTP_201_CREATED, summary="Create Session")
async def create_session(
    request: CreateSessionRequest,
    user_id: str = Depends(current_user),
    store: DatabaseManager = Depends(get_store),
) -> ResearchSession:
    """Creates a new session, subject to the daily quota."""
    return await quota.open_session(store, user_id, request.title, config.quota)


@app.get("/sessions/{session_id}", summary="Get Session")
async def get_session(
    session_id: str,
    user_id: str = Depends(current_user),
    store: DatabaseManager = Depends(get_store),
) -> ResearchSession:
    session = await store.get_session(session_id, user_id)
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found")
    return session


@app.get("/sessions/{session_id}/turns", summary="Get Session Turns")
async def get_turns(
    session_id: str,
    user_id: str = Depends(current_user),
    store: DatabaseManager = Depends(get_store),
) -> List[Turn]:
    if await store.get_session(session_id, user_id) is None:
        raise SessionNotFound(f"Session {session_id} not found")
    return await store.list_turns(session_id)


@app.post("/sessions/{session_id}/topic", summary="Submit Research Topic")
async def submit_topic(
    session_id: str,
    request: TopicRequest,
    user_id: str = Depends(current_user),
    machine: ResearchSessionMachine = Depends(get_machine),
) -> StepResult:
    """Records the topic and returns the clarifying questions (or the apology on failure)."""
    return await machine.submit_topic(session_id, request.message, owner_id=user_id)


@app.post("/sessions/{session_id}/answers", summary="Submit Clarifying Answer")
async def submit_answer(
    session_id: str,
    submission: AnswerSubmission,
    user_id: str = Depends(current_user),
    machine: ResearchSessionMachine = Depends(get_machine),
) -> StepResult:
    """Records one answer. The final answer runs both research providers."""
    return await machine.submit_answer(session_id, submission, owner_id=user_id)


@app.post("/sessions/{session_id}/send-email", summary="Email the Combined Report")
async def send_email(
    session_id: str,
    user_id: str = Depends(current_user),
    store: DatabaseManager = Depends(get_store),
    machine: ResearchSessionMachine = Depends(get_machine),
    delivery: DeliveryAdapter = Depends(get_delivery),
) -> Dict[str, Any]:
    user = await store.get_user(user_id)
    if user is None or not user.email:
        raise ValidationFailure("No email address on file. Set one with PUT /users/me.")

    report = await machine.build_report(session_id, owner_id=user_id)
    receipt = await delivery.deliver(report, user.email)
    return {
        "success": True,
        "message": "Research report sent successfully",
        "receipt": receipt.model_dump(),
        "summary": report.summary,
        "summary_source": report.summary_source,
        "sections": [section.provider for section in report.sections],
    }


# --- Main Entry Point for Running the Server ---
if __name__ == "__main__":
    uvicorn.run(
        "research_chat.api:app",
        host=config.api.host,
        port=config.api.port,
        reload=config.api.debug
    )
