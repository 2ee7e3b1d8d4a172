"""Health check endpoint — application, worker and queue status."""

import logging

from fastapi import APIRouter, Depends

from app.domain.exceptions import ServiceError
from app.infrastructure.container import Container
from app.infrastructure.dependencies import get_container

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(container: Container = Depends(get_container)) -> dict:
    """Returns the current application health status.

    ``status`` is "degraded" when the queue reports issues or its health
    cannot be read; the endpoint itself always answers 200.
    """
    settings = container.settings
    worker = container.worker

    last_heartbeat = None
    issues: list[str] = []
    try:
        worker_stats = await worker.get_worker_stats()
        last_heartbeat = worker_stats.last_heartbeat
        health = await container.queue.get_queue_health()
        issues = health.issues
    except ServiceError as exc:
        logger.warning("Health check could not read queue state: %s", exc)
        issues = [exc.user_message]

    return {
        "status": "healthy" if not issues else "degraded",
        "version": settings.app_version,
        "environment": settings.app_env,
        "worker": {
            "running": worker.is_running(),
            "last_heartbeat": last_heartbeat.isoformat() if last_heartbeat else None,
        },
        "queue": {"issues": issues},
    }
