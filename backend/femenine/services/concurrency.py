# Overview: Transaction helpers for services that change stock levels.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def begin_immediate() -> None:
    """
    Take the SQLite write lock before reading stock.

    SQLite has no SELECT ... FOR UPDATE, so two checkouts touching the same
    product are serialized by opening the transaction with BEGIN IMMEDIATE.
    Does nothing on other dialects or when the driver connection is already
    inside a transaction.
    """
    if db.engine.dialect.name != "sqlite":
        return
    connection = db.session.connection()
    if connection.connection.driver_connection.in_transaction:
        return
    connection.exec_driver_sql("BEGIN IMMEDIATE")


def lock_for_update(query):
    """
    Row-level lock on the selected products.

    NOTE: ignored by SQLite (see begin_immediate), honored by PostgreSQL/MySQL.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run one unit of work, retrying lock timeouts and version conflicts.

    `func` must do its own commit. The session is rolled back after every
    failure; errors other than RETRYABLE_ERRORS are re-raised immediately.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
