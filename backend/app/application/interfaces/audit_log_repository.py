"""Abstract repository interface for the audit trail."""

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities import AuditLogEntry, AuditLogFilters, AuditLogStatistics


class AuditLogRepository(ABC):
    """Port — defines persistence operations for audit log entries."""

    @abstractmethod
    async def create(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Persist a new entry.

        Returns:
            The created entry with its assigned ID.
        """
        ...

    @abstractmethod
    async def query(self, filters: AuditLogFilters) -> list[AuditLogEntry]:
        """Retrieve entries matching ``filters``, ordered by most recent first."""
        ...

    @abstractmethod
    async def get_statistics(self, errors_since: datetime) -> AuditLogStatistics:
        ...

    @abstractmethod
    async def delete_before(self, cutoff: datetime) -> int:
        ...
