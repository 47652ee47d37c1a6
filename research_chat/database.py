"""
Database management for Research Chat.
Handles async SQLAlchemy connections, schema creation, and session/turn storage.
"""

import logging
import uuid
from datetime import datetime, date
from typing import List, Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy import Column, Integer, String, DateTime, Date, Boolean, Text, ForeignKey, UniqueConstraint
from sqlalchemy.future import select

from research_chat.config import config
from research_chat.models import (
    ResearchSession, Turn, UserProfile, SessionStatus, DEFAULT_SESSION_TITLE
)

logger = logging.getLogger(__name__)

Base = declarative_base()

# --- SQLAlchemy Models ---

class SessionDB(Base):
    __tablename__ = "sessions"
    id = Column(String, primary_key=True)
    owner_id = Column(String, index=True, nullable=False)
    title = Column(String, default=DEFAULT_SESSION_TITLE)
    status = Column(String, default=SessionStatus.OPEN.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class TurnDB(Base):
    __tablename__ = "turns"
    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String, ForeignKey("sessions.id"), index=True, nullable=False)
    role = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    provider = Column(String, nullable=True)
    provider_role = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserDB(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True)
    email = Column(String, nullable=True)
    is_premium = Column(Boolean, default=False)


class DailySessionCountDB(Base):
    __tablename__ = "daily_session_counts"
    __table_args__ = (UniqueConstraint("user_id", "day", name="uq_user_day"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, index=True, nullable=False)
    day = Column(Date, nullable=False)
    count = Column(Integer, default=0, nullable=False)


def _to_session(row: SessionDB) -> ResearchSession:
    return ResearchSession(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        status=SessionStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_turn(row: TurnDB) -> Turn:
    return Turn(
        id=row.id,
        session_id=row.session_id,
        role=row.role,
        kind=row.kind,
        content=row.content,
        provider=row.provider,
        provider_role=row.provider_role,
        created_at=row.created_at,
    )


# --- Database Manager Class ---

class DatabaseManager:
    """Handles all database operations."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or config.database.url
        self.engine = create_async_engine(self.url, echo=False)
        self.session_factory = sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def init_db(self):
        """Initializes the database and creates tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    async def close(self):
        await self.engine.dispose()

    def _session(self) -> AsyncSession:
        return self.session_factory()

    # --- Sessions ---

    async def create_session(self, owner_id: str, title: Optional[str] = None) -> ResearchSession:
        """Creates a new open session owned by the given user."""
        now = datetime.utcnow()
        row = SessionDB(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            title=title or DEFAULT_SESSION_TITLE,
            status=SessionStatus.OPEN.value,
            created_at=now,
            updated_at=now,
        )
        async with self._session() as session:
            session.add(row)
            await session.commit()
        logger.info(f"Created session {row.id} for user {owner_id}")
        return _to_session(row)

    async def get_session(self, session_id: str, owner_id: Optional[str] = None) -> Optional[ResearchSession]:
        """Returns the session, or None if missing or owned by someone else."""
        async with self._session() as session:
            row = await session.get(SessionDB, session_id)
            if row is None or (owner_id is not None and row.owner_id != owner_id):
                return None
            return _to_session(row)

    async def list_sessions(self, owner_id: str, limit: int = 50) -> List[ResearchSession]:
        """Lists a user's sessions, most recently updated first."""
        async with self._session() as session:
            result = await session.execute(
                select(SessionDB)
                .where(SessionDB.owner_id == owner_id)
                .order_by(SessionDB.updated_at.desc())
                .limit(limit)
            )
            return [_to_session(row) for row in result.scalars().all()]

    async def _update_session(self, session_id: str, **values) -> None:
        async with self._session() as session:
            row = await session.get(SessionDB, session_id)
            if row is None:
                logger.warning(f"Update for unknown session {session_id} ignored")
                return
            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = datetime.utcnow()
            await session.commit()

    async def update_title(self, session_id: str, title: str) -> None:
        await self._update_session(session_id, title=title)

    async def update_status(self, session_id: str, status: SessionStatus) -> None:
        await self._update_session(session_id, status=SessionStatus(status).value)

    async def mark_completed(self, session_id: str) -> None:
        await self.update_status(session_id, SessionStatus.COMPLETED)

    async def mark_errored(self, session_id: str) -> None:
        await self.update_status(session_id, SessionStatus.ERRORED)

    # --- Turns ---

    async def add_turn(self, turn: Turn) -> Turn:
        """Appends a turn to its session and touches the session timestamp."""
        row = TurnDB(
            session_id=turn.session_id,
            role=turn.role.value,
            kind=turn.kind.value,
            content=turn.content,
            provider=turn.provider,
            provider_role=turn.provider_role.value if turn.provider_role else None,
            created_at=turn.created_at,
        )
        async with self._session() as session:
            session.add(row)
            parent = await session.get(SessionDB, turn.session_id)
            if parent is not None:
                parent.updated_at = datetime.utcnow()
            await session.commit()
        return _to_turn(row)

    async def list_turns(self, session_id: str) -> List[Turn]:
        """Returns a session's turns in insertion order."""
        async with self._session() as session:
            result = await session.execute(
                select(TurnDB).where(TurnDB.session_id == session_id).order_by(TurnDB.id.asc())
            )
            return [_to_turn(row) for row in result.scalars().all()]

    # --- Daily counters ---

    async def get_today_count(self, user_id: str, today: Optional[date] = None) -> int:
        today = today or date.today()
        async with self._session() as session:
            result = await session.execute(
                select(DailySessionCountDB).where(
                    DailySessionCountDB.user_id == user_id,
                    DailySessionCountDB.day == today,
                )
            )
            row = result.scalar_one_or_none()
            return row.count if row else 0

    async def increment_today_count(self, user_id: str, today: Optional[date] = None) -> int:
        """Increments and returns the user's session count for today."""
        today = today or date.today()
        async with self._session() as session:
            result = await session.execute(
                select(DailySessionCountDB).where(
                    DailySessionCountDB.user_id == user_id,
                    DailySessionCountDB.day == today,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = DailySessionCountDB(user_id=user_id, day=today, count=0)
                session.add(row)
            row.count += 1
            count = row.count
            await session.commit()
        return count

    # --- Users ---

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        async with self._session() as session:
            row = await session.get(UserDB, user_id)
            if row is None:
                return None
            return UserProfile(id=row.id, email=row.email, is_premium=bool(row.is_premium))

    async def upsert_user(self, profile: UserProfile) -> UserProfile:
        """Creates or updates a user profile."""
        async with self._session() as session:
            row = await session.get(UserDB, profile.id)
            if row is None:
                row = UserDB(id=profile.id)
                session.add(row)
            row.email = profile.email
            row.is_premium = profile.is_premium
            await session.commit()
        logger.info(f"Saved profile for user {profile.id}")
        return profile
