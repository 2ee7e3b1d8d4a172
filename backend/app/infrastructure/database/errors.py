"""Translation of SQLAlchemy / driver exceptions into ``ServiceError``.

Repositories wrap their work in ``database_errors(context)`` so callers above
the infrastructure layer only ever see the tagged domain error.
"""

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import exc as sa_exc

from app.domain.exceptions import ErrorKind, ServiceError

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes
_TRANSACTION_CODES = {"40001", "40P01"}  # serialization_failure, deadlock_detected
_TIMEOUT_CODES = {"57014", "55P03"}  # query_canceled, lock_not_available

_USER_MESSAGES = {
    ErrorKind.CONNECTION: "Unable to connect to the database. Please try again later.",
    ErrorKind.TIMEOUT: "The database took too long to respond. Please try again.",
    ErrorKind.TRANSACTION: "A conflicting update occurred. Please retry the operation.",
    ErrorKind.CONSTRAINT_VIOLATION: "The change conflicts with existing data.",
    ErrorKind.QUERY: "A database error occurred. Please try again.",
    ErrorKind.UNKNOWN: "An unexpected error occurred.",
}


def _sqlstate(error: sa_exc.DBAPIError) -> str | None:
    orig = error.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def classify_database_error(error: BaseException) -> ErrorKind:
    """Map a raw exception to an ``ErrorKind``."""
    if isinstance(error, ServiceError):
        return error.kind
    if isinstance(error, (asyncio.TimeoutError, sa_exc.TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(error, sa_exc.IntegrityError):
        return ErrorKind.CONSTRAINT_VIOLATION
    if isinstance(error, sa_exc.DBAPIError):
        code = _sqlstate(error)
        if code in _TRANSACTION_CODES:
            return ErrorKind.TRANSACTION
        if code in _TIMEOUT_CODES:
            return ErrorKind.TIMEOUT
        if error.connection_invalidated or isinstance(
            error, (sa_exc.OperationalError, sa_exc.InterfaceError)
        ):
            return ErrorKind.CONNECTION
        return ErrorKind.QUERY
    if isinstance(error, (sa_exc.DisconnectionError, ConnectionError, OSError)):
        return ErrorKind.CONNECTION
    if isinstance(error, sa_exc.SQLAlchemyError):
        return ErrorKind.QUERY
    return ErrorKind.UNKNOWN


def translate_database_error(error: BaseException, context: str = "Database operation") -> ServiceError:
    """Wrap ``error`` in a ``ServiceError``; domain errors pass through unchanged."""
    if isinstance(error, ServiceError):
        return error
    kind = classify_database_error(error)
    return ServiceError(
        kind,
        f"{context} failed: {error}",
        _USER_MESSAGES.get(kind, _USER_MESSAGES[ErrorKind.UNKNOWN]),
        cause=error,
    )


@contextmanager
def database_errors(context: str) -> Iterator[None]:
    """Re-raise anything escaping the block as a ``ServiceError``."""
    try:
        yield
    except ServiceError:
        raise
    except Exception as exc:
        translated = translate_database_error(exc, context)
        logger.debug("%s [%s]", translated.message, translated.kind.value)
        raise translated from exc
