"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings, get_settings
from app.infrastructure.container import build_container
from app.infrastructure.database import Base, create_engine, create_session_factory
from app.infrastructure.logging.log_config import setup_logging
from app.infrastructure.search import prepare_vector_storage, probe_native_vector_support
from app.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


async def _ensure_database_exists(settings: Settings) -> None:
    """Create the PostgreSQL database if it does not yet exist.

    Connects to the default ``postgres`` maintenance database, checks for the
    target database name, and issues ``CREATE DATABASE`` when missing.
    """
    from urllib.parse import urlparse

    import asyncpg

    if not settings.database_url.startswith("postgresql"):
        return

    parsed = urlparse(settings.database_url)
    db_name = parsed.path.lstrip("/")
    if not db_name:
        return

    # Build a connection URL pointing at the default 'postgres' database
    maintenance_url = settings.database_url.rsplit("/", 1)[0] + "/postgres"

    try:
        conn = await asyncpg.connect(maintenance_url)
        try:
            exists = await conn.fetchval(
                "SELECT 1 FROM pg_database WHERE datname = $1", db_name
            )
            if not exists:
                # CREATE DATABASE cannot run inside a transaction block
                await conn.execute(f'CREATE DATABASE "{db_name}"')
                logger.info("Created database '%s'", db_name)
            else:
                logger.debug("Database '%s' already exists", db_name)
        finally:
            await conn.close()
    except Exception as exc:
        logger.warning("Could not auto-create database '%s': %s", db_name, exc)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — create tables, probe vector support, run the worker."""
    settings = get_settings()
    setup_logging(settings)

    # 0. Ensure the PostgreSQL database exists (auto-create if missing)
    await _ensure_database_exists(settings)

    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    # 1. Create all database tables, then the optional pgvector column
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await prepare_vector_storage(engine, settings.embedding_dimensions)

    # 2. Pick the similarity strategy and wire the pipeline
    native_vectors = await probe_native_vector_support(engine)
    container = build_container(settings, session_factory, native_vectors)
    app.state.container = container

    # 3. Start the background worker
    await container.worker.start()

    yield

    # Shutdown
    await container.aclose()
    await engine.dispose()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
