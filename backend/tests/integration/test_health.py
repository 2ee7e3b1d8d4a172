"""Tests for the health check endpoint."""

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.domain.entities import QueueHealth, WorkerStats
from app.domain.exceptions import ErrorKind, ServiceError
from app.infrastructure.dependencies import get_container
from app.main import create_app


class StubWorker:
    def __init__(self, running: bool = True):
        self._running = running

    def is_running(self) -> bool:
        return self._running

    async def get_worker_stats(self) -> WorkerStats:
        return WorkerStats(
            is_running=self._running,
            tasks_processed=0,
            tasks_succeeded=0,
            tasks_failed=0,
            average_processing_time=0.0,
        )


class StubQueue:
    def __init__(self, issues: list[str] | None = None, error: ServiceError | None = None):
        self._issues = issues or []
        self._error = error

    async def get_queue_health(self) -> QueueHealth:
        if self._error:
            raise self._error
        return QueueHealth(
            is_healthy=not self._issues,
            total_tasks=0,
            failed_tasks_last_24h=0,
            issues=self._issues,
        )


async def _get_health(queue: StubQueue) -> tuple[int, dict]:
    app = create_app()
    container = SimpleNamespace(
        settings=Settings(app_version="9.9.9", app_env="test", _env_file=None),
        worker=StubWorker(),
        queue=queue,
    )
    app.dependency_overrides[get_container] = lambda: container

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/health")
    return response.status_code, response.json()


@pytest.mark.asyncio
async def test_health_check_returns_200():
    """Health endpoint should return 200 with status, version, and environment."""
    status_code, data = await _get_health(StubQueue())

    assert status_code == 200
    assert data["status"] == "healthy"
    assert data["version"] == "9.9.9"
    assert data["environment"] == "test"
    assert data["worker"]["running"] is True
    assert data["queue"]["issues"] == []


@pytest.mark.asyncio
async def test_health_check_reports_queue_issues_as_degraded():
    status_code, data = await _get_health(StubQueue(issues=["High number of pending tasks: 1500"]))

    assert status_code == 200
    assert data["status"] == "degraded"
    assert data["queue"]["issues"] == ["High number of pending tasks: 1500"]


@pytest.mark.asyncio
async def test_health_check_degrades_when_queue_is_unreachable():
    error = ServiceError(ErrorKind.CONNECTION, "connection refused", "Database is unavailable.")

    status_code, data = await _get_health(StubQueue(error=error))

    assert status_code == 200
    assert data["status"] == "degraded"
    assert data["queue"]["issues"] == ["Database is unavailable."]
