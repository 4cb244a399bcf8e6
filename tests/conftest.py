"""Shared pytest fixtures for ctxstore tests.

Provides containerized PostgreSQL for integration tests via two modes:
1. TEST_DATABASE_* env vars present → connect to external PG (CI scenario)
2. Otherwise → testcontainers auto-starts a temporary PG container (local dev)

Safety: refuses to run against any database whose name doesn't contain '_test'.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ctxstore.constants import DB_SCHEMA
from ctxstore.storage.database import ensure_schema
from ctxstore.storage.models import ALL_TABLES, metadata
from ctxstore.storage.persistence import PersistenceManager
from ctxstore.storage.pool import ConnectionPool


def _validate_test_db_name(name: str) -> None:
    """Safety: refuse to truncate a database whose name doesn't contain '_test'."""
    if "_test" not in name.lower():
        raise RuntimeError(
            f"Refusing to run tests against database '{name}': "
            "name must contain '_test' to prevent accidental data loss. "
            "Set TEST_DATABASE_NAME to a test-specific database."
        )


def _build_pg_url_from_env() -> str | None:
    """Build async PG URL from TEST_DATABASE_* env vars, or return None."""
    host = os.getenv("TEST_DATABASE_HOST")
    if host is None:
        return None
    port = os.getenv("TEST_DATABASE_PORT", "5432")
    user = os.getenv("TEST_DATABASE_USER", "postgres")
    password = os.getenv("TEST_DATABASE_PASSWORD", "")
    name = os.getenv("TEST_DATABASE_NAME", "mcp_context_test")
    _validate_test_db_name(name)
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


@pytest.fixture(scope="session")
def _pg_container():
    """Manage testcontainers PostgreSQL lifecycle.

    Yields (url, container) where container is None if using external PG.
    """
    url = _build_pg_url_from_env()
    if url is not None:
        yield url, None
        return

    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer("postgres:16", dbname="mcp_context_test")
    container.start()

    host = container.get_container_host_ip()
    port = container.get_exposed_port(5432)
    _validate_test_db_name(container.dbname)

    url = (
        f"postgresql+asyncpg://{container.username}:{container.password}"
        f"@{host}:{port}/{container.dbname}"
    )

    yield url, container

    container.stop()


@pytest.fixture(scope="session")
def pg_url(_pg_container) -> str:
    """Provide an async PostgreSQL URL for integration tests."""
    url, _ = _pg_container
    return url


@pytest_asyncio.fixture(scope="session")
async def db_engine(pg_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine with a small bounded pool, set up schema + tables."""
    engine = create_async_engine(pg_url, echo=False, pool_size=5, max_overflow=0, pool_timeout=2)
    await ensure_schema(engine, DB_SCHEMA)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.execute(text(f"DROP SCHEMA IF EXISTS {DB_SCHEMA} CASCADE"))

    await engine.dispose()


@pytest_asyncio.fixture(scope="session")
async def db_pool(db_engine: AsyncEngine) -> ConnectionPool:
    pool = ConnectionPool(db_engine, acquire_timeout_s=2.0)
    await pool.open()
    return pool


@pytest_asyncio.fixture
async def store(db_pool: ConnectionPool) -> PersistenceManager:
    """Provide a PersistenceManager over the shared test pool."""
    return PersistenceManager(db_pool)


@pytest_asyncio.fixture(autouse=True)
async def _integration_cleanup(request):
    """Truncate all tables after each integration test for isolation.

    Uses request.getfixturevalue() for lazy resolution: non-integration
    tests never trigger the db_engine → _pg_container fixture chain.
    """
    yield

    if not any(m.name == "integration" for m in request.node.iter_markers()):
        return

    # Sync tests (TestClient) manage their own engine and cleanup.
    if not asyncio.iscoroutinefunction(request.node.obj):
        return

    engine: AsyncEngine = request.getfixturevalue("db_engine")
    qualified = ", ".join(f"{DB_SCHEMA}.{t.name}" for t in ALL_TABLES)
    async with engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE {qualified} RESTART IDENTITY CASCADE"))
