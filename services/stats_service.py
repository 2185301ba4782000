import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import select, update, case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.stats import UserStat
from models.session import QuizSession
from services.task_manager import TaskManager
from core.exceptions import StatsStoreError
from core.logger import logger


@dataclass(frozen=True)
class CompletedQuiz:
    """Final figures of a finished session, detached from the live session."""
    user_id: int
    session_id: str
    score: int
    correct: int
    wrong: int
    best_streak: int

    @classmethod
    def from_session(cls, session: QuizSession) -> "CompletedQuiz":
        return cls(
            user_id=session.user_id,
            session_id=session.id,
            score=session.score,
            correct=session.correct,
            wrong=session.wrong,
            best_streak=session.best_streak,
        )


@dataclass(frozen=True)
class StatsRecord:
    user_id: int
    games_played: int = 0
    total_score: int = 0
    total_correct: int = 0
    total_wrong: int = 0
    best_streak: int = 0


class StatsStore(ABC):
    """Durable per-user lifetime stats keyed by user id."""

    @abstractmethod
    async def record_completion(self, result: CompletedQuiz) -> None:
        ...

    @abstractmethod
    async def get(self, user_id: int) -> Optional[StatsRecord]:
        ...


class SqlStatsStore(StatsStore):
    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def _increment(result: CompletedQuiz):
        # Increment-and-max in one statement so concurrent completions never lose updates
        return (
            update(UserStat)
            .where(UserStat.user_id == result.user_id)
            .values(
                games_played=UserStat.games_played + 1,
                total_score=UserStat.total_score + result.score,
                total_correct=UserStat.total_correct + result.correct,
                total_wrong=UserStat.total_wrong + result.wrong,
                best_streak=case(
                    (UserStat.best_streak < result.best_streak, result.best_streak),
                    else_=UserStat.best_streak,
                ),
            )
            .execution_options(synchronize_session=False)
        )

    async def record_completion(self, result: CompletedQuiz) -> None:
        try:
            async with self.session_factory() as db:
                updated = await db.execute(self._increment(result))
                if updated.rowcount:
                    await db.commit()
                    return

                db.add(UserStat(
                    user_id=result.user_id,
                    games_played=1,
                    total_score=result.score,
                    total_correct=result.correct,
                    total_wrong=result.wrong,
                    best_streak=result.best_streak,
                ))
                try:
                    await db.commit()
                except IntegrityError as e:
                    # Another completion created the row first
                    await db.rollback()
                    retried = await db.execute(self._increment(result))
                    if not retried.rowcount:
                        # No row to update either: the insert failed for another reason
                        raise StatsStoreError(f"Stats insert failed for user {result.user_id}") from e
                    await db.commit()
        except SQLAlchemyError as e:
            raise StatsStoreError(f"Stats upsert failed for user {result.user_id}") from e

    async def get(self, user_id: int) -> Optional[StatsRecord]:
        try:
            async with self.session_factory() as db:
                row = (await db.execute(select(UserStat).filter(UserStat.user_id == user_id))).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StatsStoreError(f"Stats lookup failed for user {user_id}") from e
        if row is None:
            return None
        return StatsRecord(
            user_id=row.user_id,
            games_played=row.games_played,
            total_score=row.total_score,
            total_correct=row.total_correct,
            total_wrong=row.total_wrong,
            best_streak=row.best_streak,
        )


class StatsAggregator:
    """
    Folds completed sessions into the durable stats store.

    Each completion is written by a background task; the caller never awaits
    it, and a failed write is logged here and goes no further. The quiz
    result the player sees is final either way.
    """

    def __init__(self, store: StatsStore, tasks: TaskManager = None):
        self.store = store
        self.tasks = tasks or TaskManager()

    def submit(self, session: QuizSession) -> asyncio.Task:
        result = CompletedQuiz.from_session(session)
        task = asyncio.create_task(self.record(result))
        self.tasks.register_task(session.id, task)
        return task

    async def record(self, result: CompletedQuiz) -> bool:
        try:
            await self.store.record_completion(result)
        except Exception:
            logger.exception("Failed to update overall stats", user_id=result.user_id, session_id=result.session_id)
            return False
        logger.info("Stats updated for user", user_id=result.user_id, session_id=result.session_id)
        return True

    async def drain(self):
        await self.tasks.wait_all()


def format_accuracy(correct: int, wrong: int) -> str:
    total = correct + wrong
    accuracy = (correct / total) * 100 if total > 0 else 0.0
    return f"{accuracy:.2f}%"


def build_stats_summary(record: Optional[StatsRecord]) -> dict:
    """Lifetime stats as shown to the player; no record means all zeros."""
    if record is None:
        record = StatsRecord(user_id=0)
    return {
        "gamesPlayed": record.games_played,
        "totalScore": record.total_score,
        "totalCorrect": record.total_correct,
        "totalWrong": record.total_wrong,
        "accuracy": format_accuracy(record.total_correct, record.total_wrong),
        "bestStreak": record.best_streak,
    }
