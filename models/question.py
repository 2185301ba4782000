import json
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from core.logger import logger

QuestionId = Union[int, str]


class Question(BaseModel):
    """A single trivia question from the bank."""
    model_config = ConfigDict(frozen=True)

    id: QuestionId = Field(..., description="Unique, stable question identifier")
    question: str = Field(..., description="The question text")
    options: List[Any] = Field(default_factory=list, description="Answer options in display order")
    answer: Any = Field(..., description="Correct answer value, compared by exact equality")
    difficulty: int = Field(..., ge=1, le=5, description="Difficulty level 1-5")
    category: Optional[str] = Field(None, description="Category label, compared case-insensitively")
    points: Optional[int] = Field(None, ge=0, description="Points for a correct answer")

    def point_value(self, default: int = 10) -> int:
        return self.points if self.points is not None else default

    def matches_category(self, category: str) -> bool:
        return bool(self.category) and self.category.lower() == category.lower()

    def public(self) -> Dict[str, Any]:
        # Never expose answer or points to the player
        return {"id": self.id, "question": self.question, "options": list(self.options)}


class QuestionBank:
    """Read-only, ordered collection of questions loaded once at startup."""

    def __init__(self, questions: Iterable[Question]):
        self._questions = tuple(questions)
        self._by_id: Dict[QuestionId, Question] = {}
        for q in self._questions:
            if q.id in self._by_id:
                raise ValueError(f"Duplicate question id: {q.id!r}")
            self._by_id[q.id] = q

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "QuestionBank":
        return cls(Question.model_validate(r) for r in records)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "QuestionBank":
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
        bank = cls.from_records(records)
        logger.info("Question bank loaded", path=str(path), questions=len(bank))
        return bank

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def get(self, question_id: QuestionId) -> Optional[Question]:
        return self._by_id.get(question_id)

    def remaining(self, exclude_ids: Iterable[QuestionId]) -> List[Question]:
        """Questions not in exclude_ids, in bank order."""
        seen = set(exclude_ids)
        return [q for q in self._questions if q.id not in seen]

    def categories(self) -> List[str]:
        """Distinct category labels in first-seen order."""
        return list(dict.fromkeys(q.category for q in self._questions if q.category))
