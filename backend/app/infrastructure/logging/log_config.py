"""Per-category log levels for the embedding service.

The worker's task trail (``EmbeddingWorker``) and the queue service can be
turned up to DEBUG while SQLAlchemy statements and outbound httpx calls to
the embedding server stay quiet, or the other way round.

    from app.infrastructure.logging.log_config import setup_logging
    setup_logging(settings)   # once, from the FastAPI lifespan
"""

import logging
import sys

from app.config import Settings, get_settings

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"

# Settings field → loggers whose level it controls.
_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("log_level_sql", ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite")),
    ("log_level_http", ("httpx", "httpcore")),
    ("log_level_uvicorn", ("uvicorn", "uvicorn.access", "uvicorn.error")),
    (
        "log_level_worker",
        (
            "EmbeddingWorker",
            "app.application.services.background_worker",
            "app.application.services.embedding_queue_service",
        ),
    ),
    ("log_level_embeddings", ("app.infrastructure.embeddings", "app.infrastructure.search")),
)


def setup_logging(settings: Settings | None = None) -> dict[str, int]:
    """Apply the root and per-category levels; returns the level chosen per category."""
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))
    # uvicorn installs its own handler; tests and scripts get this one.
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)

    applied: dict[str, int] = {}
    for field_name, logger_names in _CATEGORIES:
        level = _parse_level(getattr(settings, field_name, "INFO"))
        for name in logger_names:
            logging.getLogger(name).setLevel(level)
        applied[field_name] = level

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s %s",
        settings.log_level,
        " ".join(f"{name}={logging.getLevelName(level)}" for name, level in applied.items()),
    )
    return applied


def _parse_level(raw: str) -> int:
    """Level name to logging constant; unknown names fall back to INFO."""
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO
