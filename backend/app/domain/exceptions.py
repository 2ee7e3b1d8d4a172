"""Domain error type — framework-independent.

A single tagged error is used across the pipeline: the ``kind`` field tells
callers what went wrong, ``message`` is for logs, ``user_message`` is safe to
show to operators through status endpoints.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable classification of a failure."""

    CONNECTION = "connection_error"
    QUERY = "query_error"
    TRANSACTION = "transaction_error"
    CONSTRAINT_VIOLATION = "constraint_violation"
    NOT_FOUND = "not_found"
    VALIDATION = "validation_error"
    TIMEOUT = "timeout_error"
    CONFIGURATION = "configuration_error"
    PROVIDER = "provider_error"
    UNKNOWN = "unknown_error"


# Retrying these can never succeed without an operator fixing data or config.
_PERMANENT_KINDS = frozenset({ErrorKind.VALIDATION, ErrorKind.NOT_FOUND})


class ServiceError(Exception):
    """Tagged error carrying a kind, a log message and an operator-facing message."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        user_message: str | None = None,
        *,
        cause: BaseException | None = None,
    ):
        self.kind = kind
        self.message = message
        self.user_message = user_message or message
        self.cause = cause
        super().__init__(message)

    @property
    def is_permanent(self) -> bool:
        """Whether a task failing with this error should skip the retry policy."""
        return self.kind in _PERMANENT_KINDS

    @classmethod
    def not_found(cls, entity_type: str, entity_id: int | str) -> "ServiceError":
        return cls(
            ErrorKind.NOT_FOUND,
            f"{entity_type} with id '{entity_id}' not found",
            f"{entity_type} not found.",
        )

    @classmethod
    def validation(cls, message: str, user_message: str | None = None) -> "ServiceError":
        return cls(ErrorKind.VALIDATION, message, user_message)

    def __repr__(self) -> str:
        return f"ServiceError(kind={self.kind.value!r}, message={self.message!r})"
