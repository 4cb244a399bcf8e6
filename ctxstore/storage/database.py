"""Async database engine factory and schema bootstrap for PostgreSQL."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ctxstore.constants import DB_SCHEMA
from ctxstore.storage.models import metadata

if TYPE_CHECKING:
    from ctxstore.config.settings import DatabaseSettings

logger = structlog.get_logger()


def create_db_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create an async SQLAlchemy engine whose QueuePool is sized from settings.

    At most pool_size + max_overflow connections are ever live; an acquisition
    waits at most pool_timeout_s; connections older than pool_recycle_s are
    replaced on checkout; pre-ping discards connections the server dropped.
    """
    engine = create_async_engine(
        settings.url,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout_s,
        pool_recycle=settings.pool_recycle_s,
        pool_pre_ping=True,
        connect_args={
            "timeout": settings.connect_timeout_s,
            "server_settings": {"search_path": f"{settings.schema_}, public"},
        },
    )
    logger.info(
        "db_engine_created",
        host=settings.host,
        database=settings.name,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )
    return engine


async def ensure_schema(engine: AsyncEngine, schema: str = DB_SCHEMA) -> None:
    """Ensure the target schema exists, then create all tables. Idempotent."""
    async with engine.begin() as conn:
        await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        await conn.run_sync(metadata.create_all)

    logger.info("db_schema_ensured", schema=schema, tables=len(metadata.tables))
