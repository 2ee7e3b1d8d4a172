"""Abstract repository interface (port) for the persisted worker status row."""

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities import WorkerStatus


class WorkerStatusRepository(ABC):
    """Port for the singleton worker status record."""

    @abstractmethod
    async def get(self) -> WorkerStatus:
        """Current status; a fresh stopped status when none was stored yet."""
        ...

    @abstractmethod
    async def mark_started(self, now: datetime) -> None:
        """Set running, reset counters and stamp ``started_at``/``last_heartbeat``."""
        ...

    @abstractmethod
    async def mark_stopped(self) -> None:
        ...

    @abstractmethod
    async def heartbeat(self, now: datetime) -> None:
        ...

    @abstractmethod
    async def increment(self, *, succeeded: int = 0, failed: int = 0) -> None:
        """Bump the processed counter along with the succeeded/failed counters."""
        ...
