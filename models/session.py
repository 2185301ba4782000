import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.question import QuestionId


@dataclass
class QuizSession:
    """Live state of one quiz attempt. Lives in the session store only."""

    id: str
    user_id: int
    category: str
    score: int = 0
    correct: int = 0
    wrong: int = 0
    shown_ids: List[QuestionId] = field(default_factory=list)
    current_difficulty: int = 3
    current_streak: int = 0
    best_streak: int = 0
    is_completed: bool = False
    pending_question_id: Optional[QuestionId] = None
    created_at: float = field(default_factory=time.time)

    @property
    def shown_count(self) -> int:
        return len(self.shown_ids)

    @property
    def answered_count(self) -> int:
        return self.correct + self.wrong

    def mark_shown(self, question_id: QuestionId) -> None:
        """Record a delivered question; it becomes the one awaiting an answer."""
        if question_id in self.shown_ids:
            raise ValueError(f"Question {question_id!r} already shown in session {self.id}")
        self.shown_ids.append(question_id)
        self.pending_question_id = question_id

    def complete(self) -> None:
        self.is_completed = True
        self.pending_question_id = None

    def final_stats(self) -> Dict[str, Any]:
        return {
            "quizId": self.id,
            "score": self.score,
            "correct": self.correct,
            "wrong": self.wrong,
            "bestStreak": self.best_streak,
        }
