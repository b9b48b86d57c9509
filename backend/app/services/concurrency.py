# Overview: Row locking, retry and compare-and-swap helpers shared by order and payment writes.

from __future__ import annotations

import time

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (version_id conflicts). Business errors raised by func propagate
    immediately after the session is rolled back.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise


def compare_and_set_status(model, row_id: int, *, expected: str, values: dict) -> bool:
    """
    Conditional status transition: UPDATE ... WHERE id = ? AND status = ?.

    Returns False when no row matched, i.e. another writer already moved the
    row out of `expected`. Does not commit.
    """
    stmt = (
        update(model)
        .where(model.id == row_id, model.status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return bool(result.rowcount)
