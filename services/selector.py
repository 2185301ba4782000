import random
from typing import Callable, List, Optional

from models.question import Question, QuestionBank
from models.session import QuizSession
from core.config import settings

RandomIndex = Callable[[int], int]


class QuestionSelector:
    """
    Adaptive next-question selection.

    The candidate pool is every bank question the session has not seen yet,
    narrowed to the session category unless it is the general sentinel.
    Within the pool, questions at the current difficulty win; failing that,
    questions one level away; failing that, anything left. The pick inside
    the winning tier is uniform through ``random_index(n) -> [0, n)``.

    Selection never mutates the session.
    """

    def __init__(self, bank: QuestionBank, random_index: RandomIndex = None, general_category: str = None):
        self.bank = bank
        self.random_index = random_index or random.randrange
        self.general_category = (general_category or settings.GENERAL_CATEGORY).lower()

    def candidates(self, session: QuizSession) -> List[Question]:
        pool = self.bank.remaining(session.shown_ids)
        if session.category and session.category.lower() != self.general_category:
            # No fallback to other categories once this one runs dry
            pool = [q for q in pool if q.matches_category(session.category)]
        return pool

    def preferred_tier(self, pool: List[Question], difficulty: int) -> List[Question]:
        exact = [q for q in pool if q.difficulty == difficulty]
        if exact:
            return exact
        near = [q for q in pool if abs(q.difficulty - difficulty) == 1]
        if near:
            return near
        return pool

    def select(self, session: QuizSession) -> Optional[Question]:
        pool = self.candidates(session)
        if not pool:
            return None
        tier = self.preferred_tier(pool, session.current_difficulty)
        return tier[self.random_index(len(tier))]
