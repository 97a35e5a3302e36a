# Overview: Locking and retry helpers for read-modify-write database operations.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for order state changes.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the Order version_id
    column (StaleDataError on conflict) guards concurrent transitions.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on: tuple = ()):
    """
    Execute a DB unit of work, retrying on concurrency-related failures.

    Retries on OperationalError (deadlocks, "database is locked") and
    StaleDataError (optimistic locking conflicts), plus any extra exception
    types in retry_on. Domain errors raised by func propagate immediately
    after the session is rolled back.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, *retry_on):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
