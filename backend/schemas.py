# schemas.py
from datetime import datetime
from typing import Annotated, Dict, List, Optional, Literal, Union
from pydantic import (
    AliasChoices, BaseModel, Field, TypeAdapter, field_validator, model_validator,
)
from pydantic.alias_generators import to_camel

from utils import DEFAULT_TRUE_FALSE_OPTIONS, normalize_submitted_value

Difficulty = Literal["easy", "medium", "hard"]
AttemptStatus = Literal["in_progress", "completed", "abandoned"]

# Matching answers travel as a flat left -> right record, everything else as a string
SubmittedValue = Union[str, Dict[str, str]]


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# -----------------------------------------------------------------------------
# Question bank: one payload shape per question type
# -----------------------------------------------------------------------------
class QuestionBase(BaseModel):
    id: int
    quiz_id: int
    prompt: str
    points: int = Field(10, gt=0)
    difficulty: Optional[str] = None
    explanation: Optional[str] = None
    order_index: int = 0


class MultipleChoiceQuestion(QuestionBase):
    type: Literal["multiple_choice"] = "multiple_choice"
    options: List[str] = Field(min_length=2)
    correct_answer: str

    @model_validator(mode="after")
    def _answer_is_an_option(self):
        if self.correct_answer not in self.options:
            raise ValueError("correct_answer must be one of options")
        return self


class TrueFalseQuestion(QuestionBase):
    type: Literal["true_false"] = "true_false"
    options: List[str] = Field(default_factory=lambda: list(DEFAULT_TRUE_FALSE_OPTIONS), min_length=2)
    correct_answer: str

    @model_validator(mode="after")
    def _answer_is_an_option(self):
        if self.correct_answer not in self.options:
            raise ValueError("correct_answer must be one of options")
        return self


class FillBlankQuestion(QuestionBase):
    type: Literal["fill_blank"] = "fill_blank"
    options: None = None
    correct_answer: str = Field(min_length=1)


class MatchingOptions(BaseModel):
    left: List[str] = Field(min_length=1)
    right: List[str] = Field(min_length=1)


class MatchingQuestion(QuestionBase):
    type: Literal["matching"] = "matching"
    options: MatchingOptions
    correct_answer: Dict[str, str] = Field(min_length=1)

    @model_validator(mode="after")
    def _pairs_use_option_labels(self):
        unknown_left = set(self.correct_answer) - set(self.options.left)
        unknown_right = set(self.correct_answer.values()) - set(self.options.right)
        if unknown_left or unknown_right:
            raise ValueError("correct_answer pairs must use labels from options.left/options.right")
        return self


QuestionSpec = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, FillBlankQuestion, MatchingQuestion],
    Field(discriminator="type"),
]
question_adapter = TypeAdapter(QuestionSpec)


# -----------------------------------------------------------------------------
# Quizzes (read side)
# -----------------------------------------------------------------------------
class QuizOut(CamelModel):
    id: int
    lesson_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    difficulty: Optional[str] = None
    question_count: int
    passing_score: int
    time_limit: Optional[int] = None
    max_attempts: int
    is_active: bool
    estimated_xp: int


class QuestionOutline(CamelModel):
    """A question as shown to a learner: no correct answer, no explanation."""
    id: int
    quiz_id: int
    type: str
    prompt: str
    options: Union[List[str], MatchingOptions, None] = None
    points: int
    difficulty: Optional[str] = None
    order_index: int


class QuizDetailOut(QuizOut):
    questions: List[QuestionOutline]


# -----------------------------------------------------------------------------
# Attempt requests
# -----------------------------------------------------------------------------
class StartAttemptIn(CamelModel):
    quiz_id: int = Field(validation_alias=AliasChoices("quizId", "quiz_id"))
    user_id: str = Field(min_length=1, validation_alias=AliasChoices("userId", "profileId", "user_id"))


class SubmitAnswerIn(CamelModel):
    attempt_id: int = Field(validation_alias=AliasChoices("attemptId", "attempt_id"))
    question_id: int = Field(validation_alias=AliasChoices("questionId", "question_id"))
    submitted_value: Union[bool, str, Dict[str, str]] = Field(
        validation_alias=AliasChoices("submittedValue", "selectedAnswer", "answer", "submitted_value")
    )
    time_spent: int = Field(0, ge=0, validation_alias=AliasChoices("timeSpent", "time_spent"))

    @field_validator("submitted_value")
    @classmethod
    def _canonical(cls, value):
        return normalize_submitted_value(value)


class AttemptRefIn(CamelModel):
    attempt_id: int = Field(validation_alias=AliasChoices("attemptId", "attempt_id"))


# -----------------------------------------------------------------------------
# Attempt responses
# -----------------------------------------------------------------------------
class StartAttemptOut(CamelModel):
    attempt_id: int
    quiz_id: int
    user_id: str
    attempt_number: int
    started_at: datetime
    deadline_at: Optional[datetime] = None
    resumed: bool = False


class SubmitAnswerOut(CamelModel):
    accepted: bool = True


class CompleteAttemptOut(CamelModel):
    attempt_id: int
    quiz_id: int
    user_id: str
    score: int
    correct_count: int
    total_questions: int
    is_passed: bool
    completed_count: int
    passed_count: int


class AttemptOut(CamelModel):
    id: int
    quiz_id: int
    user_id: str
    attempt_number: int
    status: AttemptStatus
    started_at: datetime
    deadline_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    score: Optional[int] = None
    correct_answers: Optional[int] = None
    total_questions: Optional[int] = None


class AnswerBreakdown(CamelModel):
    question_id: int
    question_text: str
    type: str
    order_index: int
    submitted_value: Optional[SubmittedValue] = None
    correct_value: Optional[SubmittedValue] = None
    # correctness fields stay None until the attempt is completed or abandoned
    is_correct: Optional[bool] = None
    explanation: Optional[str] = None
    points: int
    points_awarded: Optional[int] = None
    time_spent: int = 0
    difficulty: Optional[str] = None


class PerformanceSummary(CamelModel):
    percentage: Optional[int] = None
    correct: Optional[int] = None
    total: int
    answered: int
    earned_points: Optional[int] = None
    max_points: int
    average_time: int


class AttemptResultOut(AttemptOut):
    passing_score: int
    is_passed: bool
    answers: List[AnswerBreakdown]
    performance_summary: PerformanceSummary


class ExpireOut(CamelModel):
    completed: List[int]


# -----------------------------------------------------------------------------
# Stats rollups
# -----------------------------------------------------------------------------
class QuizStats(CamelModel):
    quiz_id: int
    attempts_count: int = 0
    best_score: int = 0
    is_passed: bool = False
    remaining_attempts: int
    last_attempt: Optional[datetime] = None
    in_progress_count: int = 0
    passing_score: int
    max_attempts: int
    is_active: bool = True


class UserStats(CamelModel):
    user_id: str
    total_attempts: int = 0
    completed_attempts: int = 0
    passed_attempts: int = 0
    in_progress_attempts: int = 0
    average_score: float = 0.0
    passed_quizzes: List[int] = Field(default_factory=list)
    quiz_stats: Dict[int, QuizStats] = Field(default_factory=dict)
