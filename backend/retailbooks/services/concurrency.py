# Overview: Transaction helpers shared by every multi-row write.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class SequenceConflict(Exception):
    """A counter row was created concurrently; the unit of work should be retried."""


def lock_for_update(query):
    """
    Apply row-level locking to rows whose counters are about to change
    (stock, balances, document status).

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts), StaleDataError
    (version_id conflicts) and SequenceConflict. The session is rolled back
    before each retry, so func must redo all of its reads.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, SequenceConflict):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning("Concurrent update conflict, retrying (attempt %s)", attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))


def atomic(func, *, attempts: int = 3):
    """
    Run func as one all-or-nothing transaction and commit it.

    Any exception rolls back every row written by func, then propagates.
    Concurrency conflicts are retried through run_with_retry.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_op, attempts=attempts)
