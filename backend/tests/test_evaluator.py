"""Tests for per-question answer evaluation."""

import pytest
from pydantic import ValidationError as PayloadError

from errors import ValidationError
from evaluator import Evaluation, evaluate
from schemas import (
    FillBlankQuestion, MatchingQuestion, MultipleChoiceQuestion, TrueFalseQuestion, question_adapter,
)


def _mc(**kw):
    data = dict(id=1, quiz_id=1, prompt="Hello?", options=["Hola", "Adios"], correct_answer="Hola", points=10)
    data.update(kw)
    return MultipleChoiceQuestion(**data)


def _matching(**kw):
    data = dict(
        id=3, quiz_id=1, prompt="Match",
        options={"left": ["a", "b"], "right": ["x", "y", "z"]},
        correct_answer={"a": "x", "b": "y"}, points=5,
    )
    data.update(kw)
    return MatchingQuestion(**data)


def test_multiple_choice_exact_match_awards_points():
    assert evaluate(_mc(), "Hola") == Evaluation(is_correct=True, points_awarded=10)


def test_multiple_choice_is_case_and_whitespace_sensitive():
    q = _mc()
    assert evaluate(q, "hola") == Evaluation(False, 0)
    assert evaluate(q, " Hola") == Evaluation(False, 0)


def test_true_false_uses_default_options():
    q = TrueFalseQuestion(id=2, quiz_id=1, prompt="Sky is blue", correct_answer="true")
    assert q.options == ["true", "false"]
    assert evaluate(q, "true").is_correct
    assert not evaluate(q, "false").is_correct


def test_fill_blank_is_not_normalized():
    q = FillBlankQuestion(id=4, quiz_id=1, prompt="Buenos ___", correct_answer="dias", points=7)
    assert evaluate(q, "dias") == Evaluation(True, 7)
    assert evaluate(q, "Dias ") == Evaluation(False, 0)


def test_matching_requires_every_pair():
    q = _matching()
    assert evaluate(q, {"a": "x", "b": "y"}) == Evaluation(True, 5)
    # one wrong pair: no partial credit
    assert evaluate(q, {"a": "x", "b": "z"}) == Evaluation(False, 0)


def test_matching_missing_or_extra_keys_are_wrong():
    q = _matching()
    assert not evaluate(q, {"a": "x"}).is_correct
    assert not evaluate(q, {"a": "x", "b": "y", "c": "z"}).is_correct


def test_matching_ignores_key_order():
    assert evaluate(_matching(), {"b": "y", "a": "x"}).is_correct


def test_shape_mismatch_is_rejected_not_scored():
    with pytest.raises(ValidationError):
        evaluate(_mc(), {"a": "x"})
    with pytest.raises(ValidationError):
        evaluate(_matching(), "a=x,b=y")


def test_evaluate_is_deterministic():
    q = _matching()
    value = {"a": "x", "b": "z"}
    assert len({evaluate(q, value) for _ in range(5)}) == 1


def test_question_union_dispatches_on_type():
    q = question_adapter.validate_python({
        "type": "matching", "id": 9, "quiz_id": 1, "prompt": "Match",
        "options": {"left": ["a"], "right": ["x"]}, "correct_answer": {"a": "x"}, "points": 3,
    })
    assert isinstance(q, MatchingQuestion)


def test_options_shape_must_fit_type():
    with pytest.raises(PayloadError):
        _mc(correct_answer="Bonjour")
    with pytest.raises(PayloadError):
        _matching(correct_answer={"a": "nope"})
    with pytest.raises(PayloadError):
        _mc(points=0)
