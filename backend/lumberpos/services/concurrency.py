# Overview: Transaction scoping, row locking and conflict retry for stock-changing operations.

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; write_transaction takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


@contextmanager
def write_transaction(session: Session | None = None) -> Iterator[Session]:
    """
    Scope one business operation to one database transaction.

    Commits when the block exits normally and rolls back on every error
    path, so callers never observe partial writes.
    """
    session = session or db.session
    try:
        if session.get_bind().dialect.name == "sqlite":
            # Serialize writers before the first stock read.
            session.execute(text("BEGIN IMMEDIATE"))
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise


def run_with_retry(func: Callable[[], T], *, attempts: int | None = None, backoff_base: float = 0.1) -> T:
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (database locked, deadlocks) and
    StaleDataError (optimistic version conflicts). Business errors
    propagate immediately.
    """
    if attempts is None:
        attempts = current_app.config.get("WRITE_RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Write conflict, retrying (attempt %d of %d)", attempt + 1, attempts
            )
            time.sleep(backoff_base * (2 ** attempt))
    raise RuntimeError("run_with_retry called with attempts < 1")
