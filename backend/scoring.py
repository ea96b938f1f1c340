# scoring.py
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]


def round_half_up(value: Number, ndigits: int = 0) -> Union[int, float]:
    """Round halves away from zero. The one rounding routine for every score.

    Returns an ``int`` for ``ndigits=0`` and a ``float`` otherwise.
    """
    exp = Decimal(1).scaleb(-ndigits)
    exact = value if isinstance(value, Decimal) else Decimal(str(value))
    rounded = exact.quantize(exp, rounding=ROUND_HALF_UP)
    return int(rounded) if ndigits == 0 else float(rounded)


def percentage(earned: int, total: int) -> int:
    if total <= 0:
        return 0
    # exact rational before rounding; 1/3 etc. never go through a float
    return round_half_up(Decimal(earned) * 100 / Decimal(total))


@dataclass(frozen=True)
class ScoreSummary:
    percentage_score: int
    correct_count: int
    total_points: int
    earned_points: int
    answered_count: int
    question_count: int


def aggregate(answers: Iterable, questions: Iterable) -> ScoreSummary:
    """Combine evaluated answers into a percentage over all of the quiz's questions.

    ``answers`` need ``question_id``, ``is_correct`` and ``points_awarded``;
    ``questions`` need ``id`` and ``points``. An unanswered question is wrong:
    its points count toward the total and nothing toward the earned points.
    """
    points_by_question = {q.id: q.points for q in questions}
    total_points = sum(points_by_question.values())

    earned_points = 0
    correct_count = 0
    answered_count = 0
    for answer in answers:
        if answer.question_id not in points_by_question:
            logger.warning(
                "answer %s references question %s outside the quiz, left out of the score",
                getattr(answer, "id", None), answer.question_id,
            )
            continue
        answered_count += 1
        earned_points += answer.points_awarded
        if answer.is_correct:
            correct_count += 1

    return ScoreSummary(
        percentage_score=percentage(earned_points, total_points),
        correct_count=correct_count,
        total_points=total_points,
        earned_points=earned_points,
        answered_count=answered_count,
        question_count=len(points_by_question),
    )


def is_passed(percentage_score: int, passing_score: int) -> bool:
    return percentage_score >= passing_score
