# models.py
from sqlalchemy import (
    Boolean, Column, Integer, String, Text, DateTime, ForeignKey, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from db import Base
from utils import utcnow

QUESTION_TYPES = ("multiple_choice", "true_false", "fill_blank", "matching")

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_ABANDONED = "abandoned"
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_ABANDONED)


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    lesson_id = Column(String(64), index=True)
    title = Column(String(512), nullable=False)
    description = Column(Text)
    difficulty = Column(String(16))               # easy|medium|hard
    question_count = Column(Integer, nullable=False, default=0)
    passing_score = Column(Integer, nullable=False, default=70)   # 0-100
    time_limit = Column(Integer)                  # minutes, optional
    max_attempts = Column(Integer, nullable=False, default=3)
    is_active = Column(Boolean, nullable=False, default=True)
    estimated_xp = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    questions = relationship(
        "Question", back_populates="quiz", cascade="all, delete-orphan",
        order_by="Question.order_index",
    )


class Question(Base):
    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), index=True, nullable=False)
    question_type = Column(String(32), nullable=False)
    question_text = Column(Text, nullable=False)
    options = Column(JSON)                        # ["A","B"] or {"left": [...], "right": [...]}
    correct_answer = Column(JSON, nullable=False)  # "A" or {"left": "right", ...}
    points = Column(Integer, nullable=False, default=10)
    difficulty = Column(String(16))
    explanation = Column(Text)
    order_index = Column(Integer, nullable=False, default=0)

    quiz = relationship("Quiz", back_populates="questions")


class Attempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), index=True, nullable=False)
    user_id = Column(String(64), index=True, nullable=False)
    attempt_number = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=STATUS_IN_PROGRESS)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    deadline_at = Column(DateTime)
    completed_at = Column(DateTime)
    score = Column(Integer)
    correct_answers = Column(Integer)
    total_questions = Column(Integer)
    # "<user>:<quiz>" while in progress, NULL once terminal: at most one open attempt per pair
    open_key = Column(String(160), unique=True)

    quiz = relationship("Quiz")
    answers = relationship("Answer", back_populates="attempt", cascade="all, delete-orphan")


class Answer(Base):
    __tablename__ = "quiz_answers"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),)

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id", ondelete="CASCADE"), index=True, nullable=False)
    question_id = Column(Integer, ForeignKey("quiz_questions.id"), nullable=False)
    submitted_value = Column(JSON, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    points_awarded = Column(Integer, nullable=False, default=0)
    time_spent = Column(Integer, nullable=False, default=0)   # seconds
    answered_at = Column(DateTime, nullable=False, default=utcnow)

    attempt = relationship("Attempt", back_populates="answers")


def open_key_for(user_id: str, quiz_id: int) -> str:
    return f"{user_id}:{quiz_id}"
