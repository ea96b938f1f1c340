# main.py
import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from db import Base, engine, get_session, run_transaction
import models, schemas
from attempts import AttemptManager
from errors import QuizEngineError, ValidationError
from question_bank import QuestionBank
from stats import StatsAggregator

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("quiz_engine")

# -----------------------------------------------------------------------------
# App & CORS
# -----------------------------------------------------------------------------
app = FastAPI(title="Lingua - Quiz Attempt & Scoring API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create tables at startup
Base.metadata.create_all(bind=engine)


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------
@app.exception_handler(QuizEngineError)
def engine_error(request: Request, exc: QuizEngineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def request_invalid(request: Request, exc: RequestValidationError):
    # missing/malformed fields are a 400, surfaced verbatim
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "message": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------
@app.get("/api/health")
def health():
    return {"status": "ok"}


# -----------------------------------------------------------------------------
# Quizzes & question bank (read-only)
# -----------------------------------------------------------------------------
def _quiz_out(q: models.Quiz) -> dict:
    return {
        "id": q.id,
        "lesson_id": q.lesson_id,
        "title": q.title,
        "description": q.description,
        "difficulty": q.difficulty,
        "question_count": q.question_count,
        "passing_score": q.passing_score,
        "time_limit": q.time_limit,
        "max_attempts": q.max_attempts,
        "is_active": bool(q.is_active),
        "estimated_xp": q.estimated_xp,
    }


def _outline(q) -> dict:
    return {
        "id": q.id,
        "quiz_id": q.quiz_id,
        "type": q.type,
        "prompt": q.prompt,
        "options": q.options,
        "points": q.points,
        "difficulty": q.difficulty,
        "order_index": q.order_index,
    }


@app.get("/api/quizzes", response_model=List[schemas.QuizOut])
def list_quizzes(lesson_id: Optional[str] = None):
    with get_session() as db:
        return [_quiz_out(q) for q in QuestionBank(db).list_quizzes(lesson_id)]


@app.get("/api/quizzes/{quiz_id}", response_model=schemas.QuizDetailOut)
def get_quiz(quiz_id: int):
    with get_session() as db:
        bank = QuestionBank(db)
        out = _quiz_out(bank.get_quiz(quiz_id))
        out["questions"] = [_outline(q) for q in bank.questions(quiz_id)]
        return out


@app.get("/api/quiz_questions", response_model=List[schemas.QuestionOutline])
def list_questions(quiz_id: int = Query(...)):
    with get_session() as db:
        bank = QuestionBank(db)
        bank.get_quiz(quiz_id)
        return [_outline(q) for q in bank.questions(quiz_id)]


# -----------------------------------------------------------------------------
# Attempt lifecycle
# -----------------------------------------------------------------------------
@app.post("/api/quiz-attempts/start", response_model=schemas.StartAttemptOut)
def start_attempt(payload: schemas.StartAttemptIn):
    return run_transaction(lambda db: AttemptManager(db).start(payload.quiz_id, payload.user_id))


@app.post("/api/quiz-attempts/answer", response_model=schemas.SubmitAnswerOut)
def submit_answer(payload: schemas.SubmitAnswerIn):
    return run_transaction(lambda db: AttemptManager(db).submit_answer(
        payload.attempt_id, payload.question_id, payload.submitted_value, payload.time_spent,
    ))


@app.post("/api/quiz-attempts/complete", response_model=schemas.CompleteAttemptOut)
def complete_attempt(payload: schemas.AttemptRefIn):
    return run_transaction(lambda db: AttemptManager(db).complete(payload.attempt_id))


@app.post("/api/quiz-attempts/abandon", response_model=schemas.AttemptOut)
def abandon_attempt(payload: schemas.AttemptRefIn):
    return run_transaction(lambda db: AttemptManager(db).abandon(payload.attempt_id))


@app.post("/api/quiz-attempts/expire", response_model=schemas.ExpireOut)
def expire_attempts():
    """Complete every attempt whose time limit has run out."""
    return {"completed": run_transaction(lambda db: AttemptManager(db).complete_overdue())}


# -----------------------------------------------------------------------------
# Attempt history, results & stats
# -----------------------------------------------------------------------------
@app.get("/api/quiz-attempts", response_model=List[schemas.AttemptOut])
def list_attempts(
    user_id: Optional[str] = None,
    profile_id: Optional[str] = None,
    quiz_id: Optional[int] = None,
    status: Optional[schemas.AttemptStatus] = None,
):
    with get_session() as db:
        return AttemptManager(db).list_attempts(user_id=user_id or profile_id, quiz_id=quiz_id, status=status)


@app.get("/api/quiz-attempts/stats", response_model=schemas.UserStats)
def user_stats(user_id: Optional[str] = None, profile_id: Optional[str] = None):
    user_id = user_id or profile_id
    if not user_id:
        raise ValidationError("user_id is required")
    with get_session() as db:
        return StatsAggregator(db).for_user(user_id)


@app.get("/api/quiz-attempts/{attempt_id}/result", response_model=schemas.AttemptResultOut)
def attempt_result(attempt_id: int):
    with get_session() as db:
        return AttemptManager(db).get_result(attempt_id)
