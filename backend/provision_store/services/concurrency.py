# Overview: Row locking and retry helpers for write paths that race on shared rows.

from __future__ import annotations

import time
from typing import Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

T = TypeVar("T")

# Storage-level conflicts that are safe to retry by re-running the whole operation
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write(session: Session) -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks; BEGIN IMMEDIATE serializes writers so a
    read-validate-write sequence cannot interleave with another writer.
    Other dialects rely on lock_for_update() instead.
    """
    if session.get_bind().dialect.name == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(
    func: Callable[[], T],
    *,
    attempts: int = 3,
    backoff_base: float = 0.1,
    rollback: Callable[[], None] | None = None,
    on_retry: Callable[[int, Exception], None] | None = None,
) -> T:
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must be safe to re-run from the
    start; partial work is rolled back before each retry.
    """
    rollback = rollback or db.session.rollback
    attempts = max(attempts, 1)
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            rollback()
            if attempt >= attempts - 1:
                raise
            if on_retry is not None:
                on_retry(attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
    raise RuntimeError("run_with_retry exhausted without result")  # pragma: no cover
