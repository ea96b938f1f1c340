# errors.py
from typing import Any, Dict

from pydantic.alias_generators import to_camel


class QuizEngineError(Exception):
    """Base class for every error the engine surfaces to a caller."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "", **context: Any):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        # context keys travel camelCased like the rest of the wire format
        return {"error": self.code, "message": self.message, **{to_camel(k): v for k, v in self.context.items()}}


# -----------------------------------------------------------------------------
# 400
# -----------------------------------------------------------------------------
class ValidationError(QuizEngineError):
    status_code = 400
    code = "validation_error"


# -----------------------------------------------------------------------------
# 404
# -----------------------------------------------------------------------------
class NotFoundError(QuizEngineError):
    status_code = 404
    code = "not_found"


class QuizNotFound(NotFoundError):
    code = "quiz_not_found"


class AttemptNotFound(NotFoundError):
    code = "attempt_not_found"


class QuestionNotInQuiz(NotFoundError):
    code = "question_not_in_quiz"


# -----------------------------------------------------------------------------
# 409
# -----------------------------------------------------------------------------
class ConflictError(QuizEngineError):
    status_code = 409
    code = "conflict"


class AttemptAlreadyCompleted(ConflictError):
    code = "attempt_already_completed"


class QuizInactive(ConflictError):
    code = "quiz_inactive"


# -----------------------------------------------------------------------------
# 403
# -----------------------------------------------------------------------------
class LimitExceededError(QuizEngineError):
    status_code = 403
    code = "limit_exceeded"


class AttemptLimitExceeded(LimitExceededError):
    code = "attempt_limit_exceeded"
