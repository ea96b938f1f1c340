# utils.py
from datetime import datetime, timezone
from typing import Any

DEFAULT_TRUE_FALSE_OPTIONS = ["true", "false"]

def utcnow() -> datetime:
    # naive UTC, the way the DateTime columns store it
    return datetime.now(timezone.utc).replace(tzinfo=None)

def normalize_question_row(row) -> dict:
    """Flatten an ORM ``Question`` into the tagged-union payload shape.

    Fills the defaults older rows may lack (true/false options, empty
    fill-in-the-blank options) so the typed model can validate strictly.
    """
    qtype = (row.question_type or "").strip().lower()
    options = row.options
    if qtype == "true_false" and not options:
        options = list(DEFAULT_TRUE_FALSE_OPTIONS)
    if qtype == "fill_blank":
        options = None

    return {
        "type": qtype,
        "id": row.id,
        "quiz_id": row.quiz_id,
        "prompt": row.question_text,
        "options": options,
        "correct_answer": row.correct_answer,
        "points": row.points,
        "difficulty": row.difficulty,
        "explanation": row.explanation,
        "order_index": row.order_index or 0,
    }

def normalize_submitted_value(raw: Any) -> Any:
    """Canonicalize a submitted value once, at ingestion.

    Booleans (a true/false question answered with a JSON boolean) become the
    lower-case option labels; everything else is stored exactly as entered.
    """
    if isinstance(raw, bool):
        return "true" if raw else "false"
    return raw
