from typing import Any, Optional

from models.question import QuestionBank, QuestionId
from models.session import QuizSession
from services.selector import QuestionSelector
from services.session_store import SessionStore
from services.scoring import AnswerEvaluation, apply_answer
from services.stats_service import StatsAggregator, build_stats_summary
from core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    QuestionNotFoundError,
    SessionNotFoundError,
)
from core.config import settings
from core.logger import logger


class QuizService:
    def __init__(
        self,
        bank: QuestionBank,
        store: SessionStore,
        aggregator: StatsAggregator,
        selector: QuestionSelector = None,
        quiz_limit: int = None,
    ):
        self.bank = bank
        self.store = store
        self.aggregator = aggregator
        self.selector = selector or QuestionSelector(bank)
        self.quiz_limit = quiz_limit or settings.QUIZ_LIMIT

    async def _get_owned_session(self, session_id: str, user_id: int) -> QuizSession:
        session = await self.store.get(session_id)
        if not session:
            raise SessionNotFoundError()
        if session.user_id != user_id:
            logger.warning("Quiz session access denied", session_id=session_id, user_id=user_id)
            raise ForbiddenError()
        return session

    def _finish(self, session: QuizSession, reason: str):
        session.complete()
        logger.info(
            "Quiz completed",
            user_id=session.user_id,
            session_id=session.id,
            reason=reason,
            score=session.score,
            correct=session.correct,
            wrong=session.wrong,
        )
        # A quiz that ended before any answer is not a played game
        if session.answered_count:
            self.aggregator.submit(session)

    async def start(self, user_id: int, category: Optional[str] = None) -> dict:
        session = await self.store.create(user_id, category)
        return {
            "message": f"Quiz started in category: {session.category}!",
            "sessionId": session.id,
            "category": session.category,
        }

    async def next_question(self, session_id: str, user_id: int) -> Optional[dict]:
        """
        Deliver the question the player should answer now.

        A question already awaiting an answer is returned again rather than
        replaced. Returns None when no question is left; the session is then
        completed.
        """
        async with self.store.lock(session_id):
            session = await self._get_owned_session(session_id, user_id)
            if session.is_completed:
                raise InvalidStateError("Quiz session already completed.")

            if session.pending_question_id is not None:
                return self.bank.get(session.pending_question_id).public()

            question = self.selector.select(session)
            if question is None:
                self._finish(session, reason="exhausted")
                return None

            session.mark_shown(question.id)
            logger.debug("Question delivered", session_id=session_id, question_id=question.id,
                         difficulty=session.current_difficulty)
            return question.public()

    async def submit_answer(self, session_id: str, user_id: int, question_id: QuestionId, answer: Any) -> dict:
        """Evaluate the answer to the pending question and advance the quiz."""
        async with self.store.lock(session_id):
            session = await self._get_owned_session(session_id, user_id)
            if session.is_completed:
                raise InvalidStateError("Quiz session already completed.")

            question = self.bank.get(question_id)
            if not question:
                raise QuestionNotFoundError()

            if session.pending_question_id is None or session.pending_question_id != question_id:
                logger.warning("Answer ignored: question mismatch", session_id=session_id,
                               pending=session.pending_question_id, submitted=question_id)
                raise InvalidStateError("This question is not awaiting an answer.")

            session.pending_question_id = None
            evaluation = apply_answer(session, question, answer)

            if session.shown_count >= self.quiz_limit:
                self._finish(session, reason="limit")
                return self._completed(session, evaluation, "Quiz Completed!")

            next_question = self.selector.select(session)
            if next_question is None:
                self._finish(session, reason="exhausted")
                return self._completed(
                    session, evaluation, "Quiz Completed! No more questions available in this category."
                )

            session.mark_shown(next_question.id)
            return {
                "completed": False,
                "correct": evaluation.correct,
                "result": evaluation.message,
                "runningScore": session.score,
                "nextQuestion": next_question.public(),
            }

    def _completed(self, session: QuizSession, evaluation: AnswerEvaluation, message: str) -> dict:
        return {
            "completed": True,
            "correct": evaluation.correct,
            "message": message,
            "result": evaluation.message,
            "runningScore": session.score,
            "finalStats": session.final_stats(),
        }

    async def result(self, session_id: str, user_id: int) -> dict:
        session = await self._get_owned_session(session_id, user_id)
        if not session.is_completed:
            raise InvalidStateError("Quiz is still in progress.")
        return {**session.final_stats(), "category": session.category}

    async def delete(self, session_id: str, user_id: int) -> bool:
        async with self.store.lock(session_id):
            await self._get_owned_session(session_id, user_id)
            return await self.store.delete(session_id)

    def categories(self) -> list:
        return self.bank.categories()

    async def stats(self, user_id: int) -> dict:
        record = await self.aggregator.store.get(user_id)
        if record is None:
            message = "No stats found. Complete a game to see your stats!"
        else:
            message = "Overall user statistics retrieved."
        return {"message": message, "stats": build_stats_summary(record)}
