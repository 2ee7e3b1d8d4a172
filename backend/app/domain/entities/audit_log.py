"""Domain entity for the audit trail of queue, worker and task events."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogCategory(str, Enum):
    TASK_LIFECYCLE = "task_lifecycle"
    WORKER_STATUS = "worker_status"
    QUEUE_OPERATIONS = "queue_operations"
    PERFORMANCE = "performance"
    ERROR_HANDLING = "error_handling"
    BULK_OPERATIONS = "bulk_operations"


@dataclass
class AuditLogEntry:
    """A structured, persisted log line for operator review.

    Entries are written fire-and-forget; losing one never fails the
    operation that produced it.
    """

    level: LogLevel
    category: LogCategory
    message: str
    task_id: str | None = None
    article_id: int | None = None
    operation_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    duration_ms: int | None = None
    error: str | None = None
    stack_trace: str | None = None
    id: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class AuditLogFilters:
    level: LogLevel | None = None
    category: LogCategory | None = None
    task_id: str | None = None
    article_id: int | None = None
    operation_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    limit: int = 100
    offset: int = 0


@dataclass
class AuditLogStatistics:
    total_entries: int
    entries_by_level: dict[str, int]
    entries_by_category: dict[str, int]
    recent_errors: int
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
