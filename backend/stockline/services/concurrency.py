# Overview: Transaction, locking and retry helpers shared by every writer.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)


class StorageError(Exception):
    """
    Raised when the database could not complete an operation.

    The transaction has been rolled back; nothing was applied, so the
    caller may retry the whole operation.
    """
    code = "STORAGE_FAILURE"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Open the current transaction as a writer.

    On SQLite this issues BEGIN IMMEDIATE so the read-check-write sequence
    that follows holds the database write lock from its first read. Other
    databases rely on lock_for_update() row locks instead.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates; SQLAlchemy errors surface as StorageError.
    """
    if attempts is None:
        attempts = current_app.config.get("RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise StorageError(
                    "Storage contention, operation not applied",
                    {"attempts": attempts},
                ) from exc
            logger.info("Retrying after concurrency conflict (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError("Storage failure, operation not applied") from exc
        except Exception:
            db.session.rollback()
            raise
