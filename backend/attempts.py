# attempts.py
"""Attempt lifecycle: not_started -> in_progress -> completed | abandoned.

Every method is one short unit of work against the attempt row and its
answer rows; no state is kept between calls. Callers own the transaction
(see ``db.run_transaction``); methods here only flush.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

import models
import schemas
from errors import (
    AttemptAlreadyCompleted, AttemptLimitExceeded, AttemptNotFound, QuizInactive, ValidationError,
)
from evaluator import evaluate
from question_bank import QuestionBank
from scoring import aggregate, is_passed, round_half_up
from stats import StatsAggregator, invalidate_after_commit
from utils import utcnow

logger = logging.getLogger(__name__)


def attempt_out(attempt: models.Attempt) -> schemas.AttemptOut:
    return schemas.AttemptOut(
        id=attempt.id,
        quiz_id=attempt.quiz_id,
        user_id=attempt.user_id,
        attempt_number=attempt.attempt_number,
        status=attempt.status,
        started_at=attempt.started_at,
        deadline_at=attempt.deadline_at,
        completed_at=attempt.completed_at,
        score=attempt.score,
        correct_answers=attempt.correct_answers,
        total_questions=attempt.total_questions,
    )


class AttemptManager:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.bank = QuestionBank(db)
        self.stats = StatsAggregator(db)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------
    def _get_attempt(self, attempt_id: int) -> models.Attempt:
        attempt = self.db.get(models.Attempt, attempt_id)
        if attempt is None:
            raise AttemptNotFound(f"Quiz attempt {attempt_id} not found", attempt_id=attempt_id)
        return attempt

    def _open_attempt(self, user_id: str, quiz_id: int) -> Optional[models.Attempt]:
        return (
            self.db.query(models.Attempt)
            .filter(
                models.Attempt.user_id == user_id,
                models.Attempt.quiz_id == quiz_id,
                models.Attempt.status == models.STATUS_IN_PROGRESS,
            )
            .order_by(models.Attempt.started_at.desc(), models.Attempt.id.desc())
            .first()
        )

    # -------------------------------------------------------------------------
    # start
    # -------------------------------------------------------------------------
    def start(self, quiz_id: int, user_id: str) -> schemas.StartAttemptOut:
        quiz = self.bank.get_quiz(quiz_id)
        if not quiz.is_active:
            raise QuizInactive(f"Quiz {quiz_id} is not active", quiz_id=quiz_id)

        summary = self.stats.for_quiz(user_id, quiz)
        if summary.attempts_count >= quiz.max_attempts:
            raise AttemptLimitExceeded(
                f"No attempts left for quiz {quiz_id}",
                quiz_id=quiz_id,
                attempts_count=summary.attempts_count,
                max_attempts=quiz.max_attempts,
                remaining_attempts=summary.remaining_attempts,
            )

        existing = self._open_attempt(user_id, quiz_id)
        if existing is not None:
            logger.info("resuming attempt %s for user %s on quiz %s", existing.id, user_id, quiz_id)
            return self._start_out(existing, resumed=True)

        now = self.clock()
        attempt = models.Attempt(
            quiz_id=quiz_id,
            user_id=user_id,
            attempt_number=summary.attempts_count + 1,
            status=models.STATUS_IN_PROGRESS,
            started_at=now,
            deadline_at=now + timedelta(minutes=quiz.time_limit) if quiz.time_limit else None,
            open_key=models.open_key_for(user_id, quiz_id),
        )
        self.db.add(attempt)
        # a concurrent start for the same pair fails here on the unique open_key
        self.db.flush()
        invalidate_after_commit(self.db, user_id)

        logger.info(
            "started attempt %s (#%s) for user %s on quiz %s",
            attempt.id, attempt.attempt_number, user_id, quiz_id,
        )
        return self._start_out(attempt, resumed=False)

    @staticmethod
    def _start_out(attempt: models.Attempt, resumed: bool) -> schemas.StartAttemptOut:
        return schemas.StartAttemptOut(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            user_id=attempt.user_id,
            attempt_number=attempt.attempt_number,
            started_at=attempt.started_at,
            deadline_at=attempt.deadline_at,
            resumed=resumed,
        )

    # -------------------------------------------------------------------------
    # submit_answer
    # -------------------------------------------------------------------------
    def submit_answer(
        self, attempt_id: int, question_id: int, submitted_value: Any, time_spent: int = 0,
    ) -> schemas.SubmitAnswerOut:
        attempt = self._get_attempt(attempt_id)
        if attempt.status in models.TERMINAL_STATUSES:
            raise AttemptAlreadyCompleted(
                f"Quiz attempt {attempt_id} is already {attempt.status}",
                attempt_id=attempt_id, status=attempt.status,
            )
        if time_spent is None or time_spent < 0:
            raise ValidationError("timeSpent must be a non-negative number of seconds")

        question = self.bank.question(attempt.quiz_id, question_id)
        result = evaluate(question, submitted_value)

        answer = (
            self.db.query(models.Answer)
            .filter(models.Answer.attempt_id == attempt_id, models.Answer.question_id == question_id)
            .first()
        )
        if answer is None:
            answer = models.Answer(attempt_id=attempt_id, question_id=question_id)
            self.db.add(answer)
        answer.submitted_value = submitted_value
        answer.is_correct = result.is_correct
        answer.points_awarded = result.points_awarded
        answer.time_spent = time_spent
        answer.answered_at = self.clock()
        # concurrent first submissions collide on (attempt_id, question_id); the retry updates
        self.db.flush()

        logger.debug(
            "attempt %s question %s answered (correct=%s)", attempt_id, question_id, result.is_correct,
        )
        return schemas.SubmitAnswerOut(accepted=True)

    # -------------------------------------------------------------------------
    # complete
    # -------------------------------------------------------------------------
    def complete(self, attempt_id: int) -> schemas.CompleteAttemptOut:
        attempt = self._get_attempt(attempt_id)
        if attempt.status == models.STATUS_ABANDONED:
            raise AttemptAlreadyCompleted(
                f"Quiz attempt {attempt_id} was abandoned", attempt_id=attempt_id, status=attempt.status,
            )

        if attempt.status == models.STATUS_IN_PROGRESS:
            questions = self.bank.questions(attempt.quiz_id)
            answers = self.db.query(models.Answer).filter(models.Answer.attempt_id == attempt_id).all()
            summary = aggregate(answers, questions)

            # compare-and-set: only the first completion writes a score
            res = self.db.execute(
                update(models.Attempt)
                .where(
                    models.Attempt.id == attempt_id,
                    models.Attempt.status == models.STATUS_IN_PROGRESS,
                )
                .values(
                    status=models.STATUS_COMPLETED,
                    score=summary.percentage_score,
                    correct_answers=summary.correct_count,
                    total_questions=len(answers),
                    completed_at=self.clock(),
                    open_key=None,
                )
                .execution_options(synchronize_session=False)
            )
            if res.rowcount:
                logger.info(
                    "completed attempt %s: score=%s (%s/%s points)",
                    attempt_id, summary.percentage_score, summary.earned_points, summary.total_points,
                )
            else:
                logger.info("attempt %s was completed concurrently, returning stored result", attempt_id)
            self.db.refresh(attempt)
            if attempt.status != models.STATUS_COMPLETED:
                raise AttemptAlreadyCompleted(
                    f"Quiz attempt {attempt_id} is already {attempt.status}",
                    attempt_id=attempt_id, status=attempt.status,
                )

        invalidate_after_commit(self.db, attempt.user_id)
        return self._complete_out(attempt)

    def _complete_out(self, attempt: models.Attempt) -> schemas.CompleteAttemptOut:
        quiz = self.bank.get_quiz(attempt.quiz_id)
        overall = self.stats.for_user(attempt.user_id, use_cache=False)
        return schemas.CompleteAttemptOut(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            user_id=attempt.user_id,
            score=attempt.score or 0,
            correct_count=attempt.correct_answers or 0,
            total_questions=attempt.total_questions or 0,
            is_passed=is_passed(attempt.score or 0, quiz.passing_score),
            completed_count=overall.completed_attempts,
            passed_count=overall.passed_attempts,
        )

    # -------------------------------------------------------------------------
    # abandon
    # -------------------------------------------------------------------------
    def abandon(self, attempt_id: int) -> schemas.AttemptOut:
        attempt = self._get_attempt(attempt_id)
        res = self.db.execute(
            update(models.Attempt)
            .where(
                models.Attempt.id == attempt_id,
                models.Attempt.status == models.STATUS_IN_PROGRESS,
            )
            .values(status=models.STATUS_ABANDONED, completed_at=self.clock(), open_key=None)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(attempt)
        if not res.rowcount:
            raise AttemptAlreadyCompleted(
                f"Quiz attempt {attempt_id} is already {attempt.status}",
                attempt_id=attempt_id, status=attempt.status,
            )
        invalidate_after_commit(self.db, attempt.user_id)
        logger.info("abandoned attempt %s", attempt_id)
        return attempt_out(attempt)

    # -------------------------------------------------------------------------
    # Deadlines
    # -------------------------------------------------------------------------
    def complete_overdue(self, now: Optional[datetime] = None) -> List[int]:
        """Complete every in-progress attempt whose deadline has passed."""
        now = now or self.clock()
        overdue = (
            self.db.query(models.Attempt.id)
            .filter(
                models.Attempt.status == models.STATUS_IN_PROGRESS,
                models.Attempt.deadline_at.isnot(None),
                models.Attempt.deadline_at <= now,
            )
            .order_by(models.Attempt.id.asc())
            .all()
        )
        done = []
        for (attempt_id,) in overdue:
            self.complete(attempt_id)
            done.append(attempt_id)
        if done:
            logger.info("completed %s overdue attempt(s): %s", len(done), done)
        return done

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------
    def list_attempts(
        self, user_id: Optional[str] = None, quiz_id: Optional[int] = None, status: Optional[str] = None,
    ) -> List[schemas.AttemptOut]:
        q = self.db.query(models.Attempt)
        if user_id:
            q = q.filter(models.Attempt.user_id == user_id)
        if quiz_id is not None:
            q = q.filter(models.Attempt.quiz_id == quiz_id)
        if status:
            q = q.filter(models.Attempt.status == status)
        rows = q.order_by(models.Attempt.started_at.desc(), models.Attempt.id.desc()).all()
        return [attempt_out(a) for a in rows]

    def get_result(self, attempt_id: int) -> schemas.AttemptResultOut:
        attempt = self._get_attempt(attempt_id)
        quiz = self.bank.get_quiz(attempt.quiz_id)
        questions = self.bank.questions(attempt.quiz_id)
        answers = {
            a.question_id: a
            for a in self.db.query(models.Answer).filter(models.Answer.attempt_id == attempt_id)
        }
        reveal = attempt.status in models.TERMINAL_STATUSES

        breakdown = []
        for q in questions:
            a = answers.get(q.id)
            breakdown.append(schemas.AnswerBreakdown(
                question_id=q.id,
                question_text=q.prompt,
                type=q.type,
                order_index=q.order_index,
                submitted_value=a.submitted_value if a else None,
                correct_value=q.correct_answer if reveal else None,
                is_correct=bool(a and a.is_correct) if reveal else None,
                explanation=q.explanation if reveal else None,
                points=q.points,
                points_awarded=(a.points_awarded if a else 0) if reveal else None,
                time_spent=a.time_spent if a else 0,
                difficulty=q.difficulty,
            ))

        summary = aggregate(answers.values(), questions)
        # an open attempt reports no score, otherwise resubmitting would reveal the key
        score = None
        if reveal:
            score = attempt.score if attempt.status == models.STATUS_COMPLETED else summary.percentage_score
        answered = list(answers.values())
        average_time = 0
        if answered:
            average_time = round_half_up(sum(a.time_spent for a in answered) / len(answered))

        return schemas.AttemptResultOut(
            **attempt_out(attempt).model_dump(),
            passing_score=quiz.passing_score,
            is_passed=attempt.status == models.STATUS_COMPLETED and is_passed(score or 0, quiz.passing_score),
            answers=breakdown,
            performance_summary=schemas.PerformanceSummary(
                percentage=score,
                correct=summary.correct_count if reveal else None,
                total=summary.question_count,
                answered=summary.answered_count,
                earned_points=summary.earned_points if reveal else None,
                max_points=summary.total_points,
                average_time=average_time,
            ),
        )
