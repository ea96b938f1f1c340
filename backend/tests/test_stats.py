"""Tests for the attempt-history rollups."""

import random
from datetime import datetime, timedelta

import models
from attempts import AttemptManager
from factories import make_quiz, mc, question_ids
from stats import StatsAggregator, StatsCache, quiz_stats, user_stats

T0 = datetime(2025, 3, 1, 9, 0, 0)


def _quiz(qid=1, passing=70, max_attempts=3):
    return models.Quiz(id=qid, title=f"quiz {qid}", passing_score=passing, max_attempts=max_attempts, is_active=True)


def _attempt(quiz_id, status, score=None, minutes=0, number=1):
    done = status != models.STATUS_IN_PROGRESS
    return models.Attempt(
        quiz_id=quiz_id, user_id="u", attempt_number=number, status=status, score=score,
        started_at=T0 + timedelta(minutes=minutes),
        completed_at=T0 + timedelta(minutes=minutes + 5) if done else None,
    )


def test_quiz_stats_counts_only_completed_attempts():
    quiz = _quiz(max_attempts=3)
    history = [
        _attempt(1, "completed", 40, minutes=0),
        _attempt(1, "completed", 80, minutes=10, number=2),
        _attempt(1, "abandoned", minutes=20, number=3),
        _attempt(1, "in_progress", minutes=30, number=3),
    ]
    s = quiz_stats(quiz, history)
    assert s.attempts_count == 2
    assert s.best_score == 80
    assert s.is_passed
    assert s.remaining_attempts == 1
    assert s.last_attempt == T0 + timedelta(minutes=15)
    assert s.in_progress_count == 1


def test_quiz_stats_without_history_is_zeroed():
    s = quiz_stats(_quiz(max_attempts=2), [])
    assert (s.attempts_count, s.best_score, s.is_passed, s.remaining_attempts) == (0, 0, False, 2)
    assert s.last_attempt is None


def test_remaining_attempts_never_negative():
    history = [_attempt(1, "completed", 10, minutes=i, number=i + 1) for i in range(4)]
    assert quiz_stats(_quiz(max_attempts=2), history).remaining_attempts == 0


def test_user_stats_global_rollup():
    quizzes = {1: _quiz(1, passing=70), 2: _quiz(2, passing=50)}
    history = [
        _attempt(1, "completed", 60),
        _attempt(1, "completed", 75, minutes=10, number=2),
        _attempt(2, "completed", 50),
        _attempt(2, "in_progress", minutes=30, number=2),
    ]
    s = user_stats("u", quizzes, history)
    assert s.total_attempts == 4
    assert s.completed_attempts == 3
    assert s.passed_attempts == 2
    assert s.in_progress_attempts == 1
    assert s.average_score == 61.7
    assert s.passed_quizzes == [1, 2]
    assert s.quiz_stats[1].best_score == 75
    assert s.quiz_stats[2].in_progress_count == 1


def test_user_stats_is_independent_of_row_order():
    quizzes = {1: _quiz(1), 2: _quiz(2, passing=90)}
    history = [_attempt(1 + i % 2, "completed", 33 + i * 7, minutes=i, number=i + 1) for i in range(8)]
    expected = user_stats("u", quizzes, history).model_dump_json()
    for seed in range(5):
        shuffled = list(history)
        random.Random(seed).shuffle(shuffled)
        assert user_stats("u", quizzes, shuffled).model_dump_json() == expected


def test_empty_history_defaults():
    s = user_stats("nobody", {}, [])
    assert (s.total_attempts, s.completed_attempts, s.passed_attempts, s.average_score) == (0, 0, 0, 0.0)
    assert s.quiz_stats == {}


def test_aggregator_matches_projection_and_invalidates_on_complete(db):
    quiz = make_quiz(db, [mc(), mc(answer="adios")])
    qids = question_ids(db, quiz.id)
    manager = AttemptManager(db)
    aggregator = StatsAggregator(db)

    attempt = manager.start(quiz.id, "user-1")
    db.commit()
    before = aggregator.for_user("user-1")
    assert before.in_progress_attempts == 1
    assert aggregator.for_user("user-1") is before  # served from cache

    manager.submit_answer(attempt.attempt_id, qids[0], "hola")
    manager.complete(attempt.attempt_id)
    db.commit()

    after = aggregator.for_user("user-1")
    assert after is not before
    assert after.completed_attempts == 1
    assert after.quiz_stats[quiz.id].best_score == 50
    assert after.quiz_stats[quiz.id].remaining_attempts == 2

    rows = db.query(models.Attempt).filter(models.Attempt.user_id == "user-1").all()
    assert after == user_stats("user-1", {quiz.id: quiz}, rows)
    assert aggregator.for_quiz("user-1", quiz) == after.quiz_stats[quiz.id]


def test_stale_value_is_not_cached_after_invalidation():
    cache = StatsCache()
    generation = cache.generation("u")
    cache.invalidate("u")
    cache.put("u", user_stats("u", {}, []), generation)
    assert cache.get("u") is None


def test_disabled_cache_stores_nothing():
    cache = StatsCache(enabled=False)
    cache.put("u", user_stats("u", {}, []), cache.generation("u"))
    assert cache.get("u") is None
