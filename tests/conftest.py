"""
Pytest configuration and fixtures for TriviaRush tests.
"""
import sys
import os
import pytest

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.question import QuestionBank
from services.quiz_service import QuizService
from services.selector import QuestionSelector
from services.session_store import InMemorySessionStore
from services.stats_service import StatsAggregator, StatsRecord, StatsStore


class FakeStatsStore(StatsStore):
    """Dict-backed stats store; set fail=True to simulate an outage."""

    def __init__(self):
        self.records = {}
        self.calls = []
        self.fail = False

    async def record_completion(self, result):
        self.calls.append(result)
        if self.fail:
            raise ConnectionError("stats store unavailable")
        old = self.records.get(result.user_id) or StatsRecord(user_id=result.user_id)
        self.records[result.user_id] = StatsRecord(
            user_id=result.user_id,
            games_played=old.games_played + 1,
            total_score=old.total_score + result.score,
            total_correct=old.total_correct + result.correct,
            total_wrong=old.total_wrong + result.wrong,
            best_streak=max(old.best_streak, result.best_streak),
        )

    async def get(self, user_id):
        return self.records.get(user_id)


def first_index(n):
    return 0


@pytest.fixture
def sample_records():
    """Two questions at difficulty 3 in the general category"""
    return [
        {"id": 1, "question": "Pick A", "options": ["A", "B"], "answer": "A",
         "difficulty": 3, "category": "general", "points": 10},
        {"id": 2, "question": "Pick B", "options": ["A", "B"], "answer": "B",
         "difficulty": 3, "category": "general", "points": 5},
    ]


@pytest.fixture
def large_records():
    """25 questions spread over every difficulty, answer is always 'ok'"""
    return [
        {"id": i, "question": f"Question {i}", "options": ["ok", "no"], "answer": "ok",
         "difficulty": (i % 5) + 1, "category": "Science" if i % 2 else "History"}
        for i in range(1, 26)
    ]


@pytest.fixture
def stats_store():
    return FakeStatsStore()


@pytest.fixture
def make_service(stats_store):
    def _make(records, random_index=first_index, quiz_limit=None):
        bank = QuestionBank.from_records(records)
        return QuizService(
            bank=bank,
            store=InMemorySessionStore(),
            aggregator=StatsAggregator(stats_store),
            selector=QuestionSelector(bank, random_index=random_index),
            quiz_limit=quiz_limit,
        )
    return _make


@pytest.fixture
def service(make_service, sample_records):
    return make_service(sample_records)
