# Overview: Service-layer operations for concurrency; encapsulates business logic and database work.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class PersistenceFailure(Exception):
    """The store is unreachable or the transaction aborted; nothing was committed."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def conditional_update(query, values: dict) -> int:
    """
    Bulk UPDATE guarded by the query's WHERE clause.

    Returns the affected row count. Callers use a zero count to detect that
    another writer already moved the row out of the expected state.
    """
    return query.update(values, synchronize_session=False)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any failure rolls the session back so
    no partial write survives; store errors surface as PersistenceFailure,
    domain errors propagate unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise PersistenceFailure(str(exc)) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceFailure(str(exc)) from exc
        except Exception:
            db.session.rollback()
            raise
