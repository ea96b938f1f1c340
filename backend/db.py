# db.py
import logging
import os
import time
from contextlib import contextmanager
from typing import Callable, Tuple, Type, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set in .env")

# Transient storage failures are retried this many times at the request boundary
STORAGE_RETRIES = int(os.getenv("STORAGE_RETRIES", "1"))
STORAGE_RETRY_DELAY = float(os.getenv("STORAGE_RETRY_DELAY", "0.2"))

# SQLite connections are shared across the threadpool FastAPI runs sync routes in
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    pool_recycle=3600,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

T = TypeVar("T")

# OperationalError: dropped connection / locked database.
# IntegrityError: a concurrent request won a unique-key race (open attempt, answer upsert);
# re-running the unit of work observes the winner's row instead of inserting again.
RETRYABLE: Tuple[Type[Exception], ...] = (OperationalError, IntegrityError)


@contextmanager
def get_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_transaction(
    work: Callable[[Session], T],
    retries: int = STORAGE_RETRIES,
    initial_delay: float = STORAGE_RETRY_DELAY,
) -> T:
    """Run ``work(session)`` in its own transaction and commit it.

    The whole unit of work is replayed on a fresh session when the storage
    layer raises a retryable error, doubling the delay between tries. Domain
    errors raised by ``work`` roll back and propagate immediately.
    """
    delay = initial_delay
    for attempt in range(retries + 1):
        with get_session() as db:
            try:
                result = work(db)
                db.commit()
                return result
            except RETRYABLE as exc:
                db.rollback()
                if attempt == retries:
                    raise
                logger.warning(
                    "storage error (try %s/%s), retrying in %.2fs: %s",
                    attempt + 1, retries + 1, delay, exc,
                )
            except Exception:
                db.rollback()
                raise
        time.sleep(delay)
        delay *= 2
    raise RuntimeError("unreachable")  # pragma: no cover
