# question_bank.py
import logging
from typing import List, Optional

from pydantic import ValidationError as PayloadError
from sqlalchemy.orm import Session

import models
from errors import QuestionNotInQuiz, QuizNotFound
from schemas import QuestionSpec, question_adapter
from utils import normalize_question_row

logger = logging.getLogger(__name__)


class QuestionBank:
    """Read-only access to quizzes and their typed, ordered questions."""

    def __init__(self, db: Session):
        self.db = db

    def list_quizzes(self, lesson_id: Optional[str] = None) -> List[models.Quiz]:
        q = self.db.query(models.Quiz)
        if lesson_id:
            q = q.filter(models.Quiz.lesson_id == lesson_id)
        return q.order_by(models.Quiz.created_at.asc(), models.Quiz.id.asc()).all()

    def get_quiz(self, quiz_id: int) -> models.Quiz:
        quiz = self.db.get(models.Quiz, quiz_id)
        if quiz is None:
            raise QuizNotFound(f"Quiz {quiz_id} not found", quiz_id=quiz_id)
        return quiz

    def questions(self, quiz_id: int) -> List[QuestionSpec]:
        rows = (
            self.db.query(models.Question)
            .filter(models.Question.quiz_id == quiz_id)
            .order_by(models.Question.order_index.asc(), models.Question.id.asc())
            .all()
        )
        return [self._to_spec(r) for r in rows]

    def question(self, quiz_id: int, question_id: int) -> QuestionSpec:
        row = (
            self.db.query(models.Question)
            .filter(models.Question.id == question_id, models.Question.quiz_id == quiz_id)
            .first()
        )
        if row is None:
            raise QuestionNotInQuiz(
                f"Question {question_id} does not belong to quiz {quiz_id}",
                quiz_id=quiz_id, question_id=question_id,
            )
        return self._to_spec(row)

    @staticmethod
    def _to_spec(row: models.Question) -> QuestionSpec:
        try:
            return question_adapter.validate_python(normalize_question_row(row))
        except PayloadError:
            # authoring bug: options/correct_answer do not fit the question type
            logger.error("question %s has a malformed %r payload", row.id, row.question_type)
            raise
