from types import SimpleNamespace

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from core.exceptions import StatsStoreError
from models.base import Base
from models.session import QuizSession
import models.user  # noqa: F401
import models.stats  # noqa: F401
from services.stats_service import (
    CompletedQuiz,
    SqlStatsStore,
    StatsAggregator,
    StatsRecord,
    build_stats_summary,
    format_accuracy,
)


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


def completed(user_id=1, score=50, correct=5, wrong=2, best_streak=3, session_id="s"):
    return CompletedQuiz(user_id=user_id, session_id=session_id, score=score,
                         correct=correct, wrong=wrong, best_streak=best_streak)


async def test_first_completion_creates_record(session_factory):
    store = SqlStatsStore(session_factory)

    await store.record_completion(completed())

    assert await store.get(1) == StatsRecord(
        user_id=1, games_played=1, total_score=50, total_correct=5, total_wrong=2, best_streak=3
    )


async def test_completions_add_up_and_keep_best_streak(session_factory):
    store = SqlStatsStore(session_factory)

    await store.record_completion(completed(score=50, correct=5, wrong=2, best_streak=7))
    await store.record_completion(completed(score=20, correct=2, wrong=8, best_streak=2))
    await store.record_completion(completed(user_id=2, score=99))

    record = await store.get(1)
    assert record.games_played == 2
    assert record.total_score == 70
    assert record.total_correct == 7
    assert record.total_wrong == 10
    assert record.best_streak == 7
    assert (await store.get(2)).total_score == 99


async def test_missing_record_is_none(session_factory):
    assert await SqlStatsStore(session_factory).get(42) is None


async def test_best_streak_only_grows(session_factory):
    store = SqlStatsStore(session_factory)

    for streak in (2, 5, 1, 4):
        await store.record_completion(completed(score=1, best_streak=streak))

    record = await store.get(1)
    assert record.games_played == 4
    assert record.total_score == 4
    assert record.best_streak == 5


async def test_storage_errors_are_wrapped():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession)
    store = SqlStatsStore(factory)  # tables never created

    with pytest.raises(StatsStoreError):
        await store.record_completion(completed())
    await engine.dispose()


class LateRowSession:
    """
    Session wrapper whose first UPDATE reports no rows, as if another
    completion inserted the stats row right after it ran.
    """

    def __init__(self, inner):
        self.inner = inner
        self.updates_hidden = 0

    async def __aenter__(self):
        await self.inner.__aenter__()
        return self

    async def __aexit__(self, *exc):
        return await self.inner.__aexit__(*exc)

    async def execute(self, statement):
        if not self.updates_hidden:
            self.updates_hidden += 1
            return SimpleNamespace(rowcount=0)
        return await self.inner.execute(statement)

    def add(self, instance):
        self.inner.add(instance)

    async def commit(self):
        await self.inner.commit()

    async def rollback(self):
        await self.inner.rollback()


async def test_insert_race_falls_back_to_update(session_factory):
    store = SqlStatsStore(session_factory)
    await store.record_completion(completed(score=50, correct=5, wrong=2, best_streak=3))

    racing = SqlStatsStore(lambda: LateRowSession(session_factory()))
    await racing.record_completion(completed(score=20, correct=1, wrong=4, best_streak=6))

    assert await store.get(1) == StatsRecord(
        user_id=1, games_played=2, total_score=70, total_correct=6, total_wrong=6, best_streak=6
    )


async def test_failed_insert_without_row_raises():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    store = SqlStatsStore(factory)

    # No users row, so the insert violates the foreign key and the retry updates nothing
    with pytest.raises(StatsStoreError, match="insert failed"):
        await store.record_completion(completed(user_id=404))

    assert await store.get(404) is None
    await engine.dispose()


async def test_aggregator_swallows_store_failures(stats_store):
    stats_store.fail = True
    aggregator = StatsAggregator(stats_store)
    session = QuizSession(id="s1", user_id=1, category="general", score=10, correct=1)

    task = aggregator.submit(session)
    await aggregator.drain()

    assert task.result() is False
    assert len(aggregator.tasks) == 0


async def test_aggregator_snapshots_session(stats_store):
    aggregator = StatsAggregator(stats_store)
    session = QuizSession(id="s1", user_id=1, category="general", score=10, correct=1, best_streak=1)

    aggregator.submit(session)
    session.score = 999
    await aggregator.drain()

    assert stats_store.records[1].total_score == 10


def test_summary_defaults_to_zero():
    assert build_stats_summary(None) == {
        "gamesPlayed": 0,
        "totalScore": 0,
        "totalCorrect": 0,
        "totalWrong": 0,
        "accuracy": "0.00%",
        "bestStreak": 0,
    }


def test_accuracy_formatting():
    assert format_accuracy(15, 5) == "75.00%"
    assert format_accuracy(1, 2) == "33.33%"
    assert format_accuracy(0, 0) == "0.00%"
    assert format_accuracy(3, 0) == "100.00%"
