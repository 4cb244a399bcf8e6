"""Server lifecycle: owns the engine, pool, persistence layer and router.

Transports (MCP stdio, WebSocket gateway) are thin adapters over
``ContextStoreServer.router``; none of them hold database state.
"""

from __future__ import annotations

import asyncio
import contextlib
from types import TracebackType
from typing import Self

import structlog

from ctxstore.config.settings import Settings
from ctxstore.gateway.dispatch import ToolRouter
from ctxstore.infra.errors import PoolFatalError
from ctxstore.storage.database import create_db_engine, ensure_schema
from ctxstore.storage.persistence import PersistenceManager
from ctxstore.storage.pool import ConnectionPool
from ctxstore.tools.builtins import register_builtins
from ctxstore.tools.registry import ToolRegistry

logger = structlog.get_logger()


class ContextStoreServer:
    """Startup and shutdown of everything behind the transports.

    Startup fails fast when the database is unreachable. Shutdown stops new
    dispatches, waits for in-flight ones up to the grace period, then drains
    and closes the pool.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._pool: ConnectionPool | None = None
        self._router: ToolRouter | None = None
        self._supervisor: asyncio.Task[None] | None = None

    @property
    def pool(self) -> ConnectionPool:
        if self._pool is None:
            raise RuntimeError("Server not started")
        return self._pool

    @property
    def router(self) -> ToolRouter:
        if self._router is None:
            raise RuntimeError("Server not started")
        return self._router

    async def start(self) -> None:
        db = self.settings.database
        engine = create_db_engine(db)
        pool = ConnectionPool(engine, acquire_timeout_s=db.pool_timeout_s)
        try:
            await pool.open()
            if db.auto_create_schema:
                await ensure_schema(engine, db.schema_)
        except Exception:
            await engine.dispose()
            raise

        store = PersistenceManager(pool)
        registry = ToolRegistry()
        register_builtins(registry, store)

        self._pool = pool
        self._router = ToolRouter(registry)

        sup = self.settings.supervisor
        self._supervisor = asyncio.create_task(
            pool.supervise(
                interval_s=sup.interval_s,
                max_attempts=sup.max_attempts,
                backoff_initial_s=sup.backoff_initial_s,
                backoff_max_s=sup.backoff_max_s,
            ),
            name="pool-supervisor",
        )
        logger.info(
            "server_started",
            name=self.settings.server.name,
            version=self.settings.server.version,
            tools=len(registry),
        )

    async def wait_fatal(self) -> PoolFatalError | None:
        """Block until the pool supervisor exits.

        Returns the PoolFatalError when the database could not be recovered,
        or None when supervision ended because the pool was closed.
        """
        if self._supervisor is None:
            raise RuntimeError("Server not started")
        try:
            await asyncio.shield(self._supervisor)
        except PoolFatalError as e:
            return e
        return None

    async def stop(self) -> None:
        if self._router is None or self._pool is None:
            return

        grace = self.settings.server.shutdown_grace_s
        self._router.close()
        await self._router.wait_idle(grace)
        await self._pool.drain_and_close(grace)

        if self._supervisor is not None:
            self._supervisor.cancel()
            with contextlib.suppress(asyncio.CancelledError, PoolFatalError):
                await self._supervisor
        logger.info("server_stopped")

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
