"""
Translation of SQLAlchemy/DBAPI errors into engine errors.
"""

import logging

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from .exceptions import ConcurrencyError, FreeSeatError, InternalError

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}

SQLITE_CONFLICT_MESSAGES = ("database is locked", "database table is locked")


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_write_conflict(exc: SQLAlchemyError) -> bool:
    """Whether the error means a concurrent transaction won and ours was rolled back."""
    if isinstance(exc, IntegrityError):
        return True
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in CONFLICT_SQLSTATES:
            return True
        message = str(exc.orig).lower() if exc.orig is not None else ""
        return any(fragment in message for fragment in SQLITE_CONFLICT_MESSAGES)
    return False


def translate_storage_error(exc: Exception, operation: str) -> FreeSeatError:
    """
    Map a storage exception raised before commit to the engine taxonomy.

    Args:
        exc: The exception raised by SQLAlchemy
        operation: Short operation name for log context

    Returns:
        ConcurrencyError for definite conflicts, InternalError otherwise
    """
    if isinstance(exc, FreeSeatError):
        return exc

    if isinstance(exc, SQLAlchemyError) and is_write_conflict(exc):
        logger.info(f"Write conflict during {operation}: {type(exc).__name__}")
        return ConcurrencyError(f"Concurrent update detected during {operation}")

    logger.error(f"Storage failure during {operation}: {exc}")
    return InternalError(f"Storage failure during {operation}")
