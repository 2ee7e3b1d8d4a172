"""Domain entities describing the background worker's persisted state."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class WorkerStatus:
    """Singleton record mutated only by the worker process."""

    is_running: bool = False
    tasks_processed: int = 0
    tasks_succeeded: int = 0
    tasks_failed: int = 0
    started_at: datetime | None = None
    last_heartbeat: datetime | None = None


@dataclass
class WorkerStats:
    """Worker status enriched with recent processing time, for status endpoints."""

    is_running: bool
    tasks_processed: int
    tasks_succeeded: int
    tasks_failed: int
    average_processing_time: float  # seconds, completions in the last 24h
    started_at: datetime | None = None
    last_heartbeat: datetime | None = None
