"""Startup capability probe: can the database order by vector distance natively?"""

import logging

from pgvector.sqlalchemy import Vector
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

_EXTENSION_QUERY = text("SELECT 1 FROM pg_extension WHERE extname = 'vector'")
_COLUMN_QUERY = text(
    "SELECT 1 FROM information_schema.columns "
    "WHERE table_name = 'embeddings' AND column_name = 'vector'"
)


async def prepare_vector_storage(engine: AsyncEngine, dimensions: int) -> None:
    """Install pgvector and add the native ``vector`` column when possible.

    Failures are logged and leave the database on the in-process fallback.
    Must run after the ORM tables exist.
    """
    if engine.dialect.name != "postgresql":
        return

    try:
        async with engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
    except SQLAlchemyError as exc:
        logger.warning("pgvector extension unavailable, using in-memory similarity: %s", exc)
        return

    column_type = Vector(dimensions).compile(dialect=engine.dialect)
    try:
        async with engine.begin() as conn:
            await conn.execute(
                text(f"ALTER TABLE embeddings ADD COLUMN IF NOT EXISTS vector {column_type}")
            )
            await conn.execute(
                text(
                    "CREATE INDEX IF NOT EXISTS idx_embeddings_vector_hnsw "
                    "ON embeddings USING hnsw (vector vector_cosine_ops)"
                )
            )
    except SQLAlchemyError as exc:
        logger.warning("Could not add native vector column: %s", exc)


async def probe_native_vector_support(engine: AsyncEngine) -> bool:
    """True when pgvector is installed and ``embeddings.vector`` exists."""
    if engine.dialect.name != "postgresql":
        logger.info("Dialect %s has no native vector support", engine.dialect.name)
        return False

    try:
        async with engine.connect() as conn:
            has_extension = await conn.scalar(_EXTENSION_QUERY)
            has_column = await conn.scalar(_COLUMN_QUERY) if has_extension else None
    except SQLAlchemyError as exc:
        logger.warning("Vector capability probe failed: %s", exc)
        return False

    supported = bool(has_extension and has_column)
    logger.info("Native vector similarity %s", "enabled" if supported else "disabled")
    return supported
