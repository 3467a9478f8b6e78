# Overview: Persistence seam helpers; retry on concurrency conflicts and translate storage failures.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class PersistenceError(Exception):
    """Raised when a read or write against the backing store fails."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts on version_id).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def persist(func, *, action: str, details: dict | None = None, attempts: int = 3):
    """
    Run a unit of work with retry; any remaining SQLAlchemy failure is rolled
    back and re-raised as PersistenceError.

    Each call commits (or rolls back) on its own. Callers compose several
    calls; there is no cross-call atomicity.
    """
    try:
        return run_with_retry(func, attempts=attempts)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to {action}", details={**(details or {}), "cause": str(exc)}) from exc
