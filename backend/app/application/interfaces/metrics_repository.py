"""Abstract repository interface (port) for performance metric samples."""

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities import MetricFilters, MetricSample, MetricType


class MetricsRepository(ABC):
    """Port — append-only storage of metric samples."""

    @abstractmethod
    async def add(self, sample: MetricSample) -> None:
        ...

    @abstractmethod
    async def get_samples(
        self, metric_type: MetricType, start: datetime, end: datetime
    ) -> list[MetricSample]:
        """Samples of one type with ``start <= timestamp <= end``, oldest first."""
        ...

    @abstractmethod
    async def query(self, filters: MetricFilters) -> list[MetricSample]:
        """Samples matching ``filters``, newest first."""
        ...

    @abstractmethod
    async def delete_before(self, cutoff: datetime) -> int:
        ...
