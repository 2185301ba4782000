import asyncio
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from models.session import QuizSession
from core.config import settings
from core.logger import logger


class SessionStore(ABC):
    """Storage for live quiz sessions."""

    @abstractmethod
    async def create(self, user_id: int, category: Optional[str] = None) -> QuizSession:
        ...

    @abstractmethod
    async def get(self, session_id: str) -> Optional[QuizSession]:
        ...

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        ...

    @abstractmethod
    def lock(self, session_id: str):
        """Async context manager serializing mutations of one session."""
        ...


class InMemorySessionStore(SessionStore):
    """
    Process-local session store.
    Sessions live until deleted or until the process exits.
    """

    def __init__(self, initial_difficulty: int = None, general_category: str = None):
        self.initial_difficulty = initial_difficulty or settings.INITIAL_DIFFICULTY
        self.general_category = general_category or settings.GENERAL_CATEGORY
        self._sessions: Dict[str, QuizSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _new_id(self) -> str:
        session_id = uuid.uuid4().hex
        while session_id in self._sessions:
            session_id = uuid.uuid4().hex
        return session_id

    async def create(self, user_id: int, category: Optional[str] = None) -> QuizSession:
        category = (category or "").strip() or self.general_category
        session = QuizSession(
            id=self._new_id(),
            user_id=user_id,
            category=category,
            current_difficulty=self.initial_difficulty,
        )
        self._sessions[session.id] = session
        self._locks[session.id] = asyncio.Lock()
        logger.info("Quiz session created", user_id=user_id, session_id=session.id, category=category)
        return session

    async def get(self, session_id: str) -> Optional[QuizSession]:
        return self._sessions.get(session_id)

    async def delete(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)
        if session:
            logger.info("Quiz session deleted", user_id=session.user_id, session_id=session_id)
        return session is not None

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(session_id)
        if lock is None:
            # Unknown session: nothing to serialize, the caller reports not found
            yield
            return
        async with lock:
            yield
