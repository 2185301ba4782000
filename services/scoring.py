from dataclasses import dataclass
from typing import Any

from models.question import Question
from models.session import QuizSession
from core.config import settings


@dataclass(frozen=True)
class AnswerEvaluation:
    correct: bool
    message: str
    points_awarded: int


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def apply_answer(
    session: QuizSession,
    question: Question,
    submitted: Any,
    default_points: int = None,
    min_difficulty: int = None,
    max_difficulty: int = None,
) -> AnswerEvaluation:
    """
    Apply one answer to the session: score, counters, streak and difficulty.
    Correctness is exact equality with the stored answer, including its JSON
    type: true, 1 and 1.0 are three different answers.
    """
    default_points = settings.DEFAULT_POINTS if default_points is None else default_points
    low = settings.MIN_DIFFICULTY if min_difficulty is None else min_difficulty
    high = settings.MAX_DIFFICULTY if max_difficulty is None else max_difficulty

    is_correct = type(submitted) is type(question.answer) and submitted == question.answer
    points = 0

    if is_correct:
        points = question.point_value(default_points)
        session.score += points
        session.correct += 1
        session.current_streak += 1
        session.current_difficulty = clamp(session.current_difficulty + 1, low, high)
        message = "Correct!"
    else:
        session.wrong += 1
        session.current_streak = 0
        session.current_difficulty = clamp(session.current_difficulty - 1, low, high)
        message = f"Wrong! Correct answer: {question.answer}"

    session.best_streak = max(session.best_streak, session.current_streak)
    return AnswerEvaluation(correct=is_correct, message=message, points_awarded=points)
