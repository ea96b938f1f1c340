# evaluator.py
"""Per-question answer evaluation.

``evaluate`` is a pure function of the question and the submitted value:
no storage, no clock, no partial credit. A submitted value whose shape does
not fit the question type is rejected rather than scored as wrong.
"""
from dataclasses import dataclass
from collections.abc import Mapping
from typing import Any

from errors import ValidationError
from schemas import (
    FillBlankQuestion, MatchingQuestion, MultipleChoiceQuestion, QuestionSpec, TrueFalseQuestion,
)


@dataclass(frozen=True)
class Evaluation:
    is_correct: bool
    points_awarded: int


def _require_text(question, submitted: Any) -> str:
    if not isinstance(submitted, str):
        raise ValidationError(
            f"question {question.id} ({question.type}) expects a text answer",
            question_id=question.id,
        )
    return submitted


def _require_mapping(question, submitted: Any) -> Mapping[str, str]:
    if not isinstance(submitted, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in submitted.items()
    ):
        raise ValidationError(
            f"question {question.id} (matching) expects a label -> label mapping",
            question_id=question.id,
        )
    return submitted


def is_text_match(question, submitted: Any) -> bool:
    # exact, case- and whitespace-sensitive
    return _require_text(question, submitted) == question.correct_answer


def is_mapping_match(question: MatchingQuestion, submitted: Any) -> bool:
    # every pair must match and no extra or missing keys
    return dict(_require_mapping(question, submitted)) == dict(question.correct_answer)


def evaluate(question: QuestionSpec, submitted: Any) -> Evaluation:
    """Decide correctness of ``submitted`` for ``question`` and award its points."""
    if isinstance(question, (MultipleChoiceQuestion, TrueFalseQuestion, FillBlankQuestion)):
        correct = is_text_match(question, submitted)
    elif isinstance(question, MatchingQuestion):
        correct = is_mapping_match(question, submitted)
    else:
        raise ValidationError(f"unsupported question type: {getattr(question, 'type', None)!r}")
    return Evaluation(is_correct=correct, points_awarded=question.points if correct else 0)
