# stats.py
"""Read-side rollups of a user's attempt history.

Everything here is derived from ``quiz_attempts`` rows on demand; nothing
is written back. The projection functions are order-independent so the
same history always yields identical numbers.
"""
import logging
import os
import threading
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.orm import Session

import models
from schemas import QuizStats, UserStats
from scoring import is_passed, round_half_up

load_dotenv()

logger = logging.getLogger(__name__)

STATS_CACHE_ENABLED = os.getenv("STATS_CACHE_ENABLED", "1").strip().lower() not in ("0", "false", "no")


def _completed(attempts: Iterable) -> List:
    return [a for a in attempts if a.status == models.STATUS_COMPLETED]


def quiz_stats(quiz, attempts: Iterable) -> QuizStats:
    """Roll up one user's attempts at one quiz. Only completed attempts count."""
    attempts = [a for a in attempts if a.quiz_id == quiz.id]
    completed = _completed(attempts)
    scores = [a.score or 0 for a in completed]
    finished_at = [a.completed_at for a in completed if a.completed_at is not None]

    return QuizStats(
        quiz_id=quiz.id,
        attempts_count=len(completed),
        best_score=max(scores, default=0),
        is_passed=any(is_passed(s, quiz.passing_score) for s in scores),
        remaining_attempts=max(0, quiz.max_attempts - len(completed)),
        last_attempt=max(finished_at, default=None),
        in_progress_count=sum(1 for a in attempts if a.status == models.STATUS_IN_PROGRESS),
        passing_score=quiz.passing_score,
        max_attempts=quiz.max_attempts,
        is_active=bool(quiz.is_active),
    )


def user_stats(user_id: str, quizzes: Mapping[int, object], attempts: Iterable) -> UserStats:
    """Global and per-quiz rollups for one user across every quiz they attempted."""
    attempts = list(attempts)
    completed = _completed(attempts)

    passed_attempts = 0
    passed_quizzes = set()
    for a in completed:
        if is_passed(a.score or 0, quizzes[a.quiz_id].passing_score):
            passed_attempts += 1
            passed_quizzes.add(a.quiz_id)

    average = 0.0
    if completed:
        total = sum(a.score or 0 for a in completed)
        average = round_half_up(Decimal(total) / Decimal(len(completed)), 1)

    per_quiz = {
        quiz_id: quiz_stats(quizzes[quiz_id], attempts)
        for quiz_id in sorted({a.quiz_id for a in attempts})
    }

    return UserStats(
        user_id=user_id,
        total_attempts=len(attempts),
        completed_attempts=len(completed),
        passed_attempts=passed_attempts,
        in_progress_attempts=sum(1 for a in attempts if a.status == models.STATUS_IN_PROGRESS),
        average_score=average,
        passed_quizzes=sorted(passed_quizzes),
        quiz_stats=per_quiz,
    )


class StatsCache:
    """Per-user ``UserStats`` cache, invalidated whenever an attempt changes state.

    Each invalidation bumps a per-user generation; a value computed before
    the bump is discarded instead of stored.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._lock = threading.Lock()
        self._entries: Dict[str, UserStats] = {}
        self._generations: Dict[str, int] = {}

    def generation(self, user_id: str) -> int:
        with self._lock:
            return self._generations.get(user_id, 0)

    def get(self, user_id: str) -> Optional[UserStats]:
        if not self.enabled:
            return None
        with self._lock:
            return self._entries.get(user_id)

    def put(self, user_id: str, value: UserStats, generation: int) -> None:
        if not self.enabled:
            return
        with self._lock:
            if self._generations.get(user_id, 0) == generation:
                self._entries[user_id] = value

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)
            self._generations[user_id] = self._generations.get(user_id, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()


stats_cache = StatsCache(enabled=STATS_CACHE_ENABLED)


def invalidate_after_commit(db: Session, user_id: str, cache: StatsCache = stats_cache) -> None:
    """Drop the user's cached stats now and again once ``db`` commits."""
    cache.invalidate(user_id)
    event.listen(db, "after_commit", lambda session: cache.invalidate(user_id), once=True)


class StatsAggregator:
    def __init__(self, db: Session, cache: StatsCache = stats_cache):
        self.db = db
        self.cache = cache

    def _attempts(self, user_id: str, quiz_id: Optional[int] = None) -> List[models.Attempt]:
        q = self.db.query(models.Attempt).filter(models.Attempt.user_id == user_id)
        if quiz_id is not None:
            q = q.filter(models.Attempt.quiz_id == quiz_id)
        return q.all()

    def for_quiz(self, user_id: str, quiz: models.Quiz) -> QuizStats:
        """Fresh (never cached) rollup, used for access control."""
        return quiz_stats(quiz, self._attempts(user_id, quiz.id))

    def for_user(self, user_id: str, use_cache: bool = True) -> UserStats:
        if use_cache:
            cached = self.cache.get(user_id)
            if cached is not None:
                return cached
        generation = self.cache.generation(user_id)

        attempts = self._attempts(user_id)
        quiz_ids = {a.quiz_id for a in attempts}
        quizzes = {}
        if quiz_ids:
            rows = self.db.query(models.Quiz).filter(models.Quiz.id.in_(quiz_ids)).all()
            quizzes = {q.id: q for q in rows}

        result = user_stats(user_id, quizzes, attempts)
        if use_cache:
            self.cache.put(user_id, result, generation)
        logger.debug("stats recomputed for user %s (%s attempts)", user_id, len(attempts))
        return result
