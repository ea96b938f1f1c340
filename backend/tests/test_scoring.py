"""Tests for score aggregation and rounding."""

from decimal import Decimal
from types import SimpleNamespace as NS

import pytest

from scoring import aggregate, is_passed, percentage, round_half_up


def _q(qid, points=10):
    return NS(id=qid, points=points)


def _a(qid, correct, points):
    return NS(question_id=qid, is_correct=correct, points_awarded=points if correct else 0)


def test_one_of_two_correct_scores_fifty_and_fails():
    s = aggregate([_a(1, True, 10), _a(2, False, 10)], [_q(1), _q(2)])
    assert s.percentage_score == 50
    assert (s.correct_count, s.earned_points, s.total_points) == (1, 10, 20)
    assert not is_passed(s.percentage_score, 70)


def test_all_correct_scores_hundred_and_passes():
    s = aggregate([_a(1, True, 10), _a(2, True, 10)], [_q(1), _q(2)])
    assert s.percentage_score == 100
    assert is_passed(s.percentage_score, 70)


def test_unanswered_question_counts_against_the_score():
    s = aggregate([_a(1, True, 10), _a(2, True, 10)], [_q(1), _q(2), _q(3)])
    assert s.total_points == 30
    assert s.earned_points == 20
    assert s.percentage_score == 67
    assert (s.answered_count, s.question_count) == (2, 3)


def test_points_are_weighted():
    s = aggregate([_a(1, True, 30), _a(2, False, 10)], [_q(1, 30), _q(2, 10)])
    assert s.percentage_score == 75


def test_answers_outside_the_quiz_are_logged_and_left_out(caplog):
    with caplog.at_level("WARNING", logger="scoring"):
        s = aggregate([_a(1, True, 10), _a(99, True, 10)], [_q(1), _q(2)])
    assert (s.earned_points, s.answered_count, s.percentage_score) == (10, 1, 50)
    assert "question 99 outside the quiz" in caplog.text


def test_no_questions_scores_zero():
    s = aggregate([], [])
    assert s.percentage_score == 0
    assert s.total_points == 0


@pytest.mark.parametrize("earned,total,expected", [(1, 8, 13), (1, 200, 1), (1, 3, 33), (2, 3, 67), (0, 5, 0)])
def test_percentage_rounds_half_up(earned, total, expected):
    assert percentage(earned, total) == expected


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(Decimal("62.5")) == 63
    assert round_half_up(66.65, 1) == 66.7
    assert isinstance(round_half_up(1.0), int)


def test_passing_threshold_is_inclusive():
    assert is_passed(70, 70)
    assert not is_passed(69, 70)
