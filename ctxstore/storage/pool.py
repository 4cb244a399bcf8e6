"""Bounded connection pool lifecycle around the SQLAlchemy AsyncEngine.

The engine's QueuePool does the pooling (size, overflow, acquisition
timeout, recycle). This wrapper adds what the service needs on top:

- an explicit state machine: new -> open -> draining -> closed, never back;
- acquisition errors mapped to ConnectionAcquisitionTimeout / PoolClosedError;
- in-use accounting so shutdown can wait for outstanding releases;
- a health snapshot and a supervised reconnect loop with backoff that
  escalates to PoolFatalError only after repeated consecutive failures.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import StrEnum

import structlog
from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from ctxstore.infra.errors import (
    ConnectionAcquisitionTimeout,
    PoolClosedError,
    PoolError,
    PoolFatalError,
)

logger = structlog.get_logger()


class PoolState(StrEnum):
    new = "new"
    open = "open"
    draining = "draining"
    closed = "closed"


@dataclass(frozen=True)
class PoolHealth:
    state: PoolState
    healthy: bool
    in_use: int
    consecutive_failures: int
    last_error: str | None

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "healthy": self.healthy,
            "in_use": self.in_use,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
        }


class ConnectionPool:
    """Owns the engine for the server's lifetime. One instance per process."""

    def __init__(self, engine: AsyncEngine, *, acquire_timeout_s: float) -> None:
        self._engine = engine
        self._acquire_timeout_s = acquire_timeout_s
        self._state = PoolState.new
        self._in_use = 0
        self._released = asyncio.Event()
        self._released.set()
        self._consecutive_failures = 0
        self._last_error: str | None = None

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def in_use(self) -> int:
        return self._in_use

    def _set_state(self, state: PoolState) -> None:
        logger.info("pool_state_changed", previous=self._state.value, state=state.value)
        self._state = state

    async def open(self) -> None:
        """Verify the engine is reachable and start accepting acquisitions.

        Raises PoolError if the pool was opened before, or the engine's
        connection error if the database is unreachable.
        """
        if self._state is not PoolState.new:
            raise PoolError(f"Connection pool cannot be reopened (state: {self._state})")
        await self.ping()
        self._set_state(PoolState.open)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[AsyncConnection]:
        """Borrow a connection inside a transaction; released on exit regardless of outcome.

        The transaction commits when the block exits normally and rolls back
        when it raises.
        """
        if self._state is not PoolState.open:
            raise PoolClosedError(self._state.value)

        self._in_use += 1
        self._released.clear()
        try:
            async with self._engine.begin() as conn:
                yield conn
        except sa_exc.TimeoutError as e:
            logger.warning(
                "pool_acquire_timeout",
                timeout_s=self._acquire_timeout_s,
                in_use=self._in_use,
            )
            raise ConnectionAcquisitionTimeout(self._acquire_timeout_s) from e
        finally:
            self._in_use -= 1
            if self._in_use == 0:
                self._released.set()

    async def ping(self) -> None:
        """Round-trip a trivial query on a fresh checkout."""
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def check(self) -> bool:
        """Ping once and record the outcome in the health counters."""
        try:
            await self.ping()
        except sa_exc.TimeoutError:
            # Every connection is checked out: the pool is busy, not broken.
            logger.info("pool_health_check_busy", in_use=self._in_use)
            return True
        except Exception as e:
            self._consecutive_failures += 1
            self._last_error = str(e) or type(e).__name__
            logger.warning(
                "pool_health_check_failed",
                consecutive_failures=self._consecutive_failures,
                error=self._last_error,
            )
            return False

        if self._consecutive_failures:
            logger.info("pool_recovered", after_failures=self._consecutive_failures)
        self._consecutive_failures = 0
        self._last_error = None
        return True

    def health(self) -> PoolHealth:
        return PoolHealth(
            state=self._state,
            healthy=self._state is PoolState.open and self._consecutive_failures == 0,
            in_use=self._in_use,
            consecutive_failures=self._consecutive_failures,
            last_error=self._last_error,
        )

    async def supervise(
        self,
        *,
        interval_s: float,
        max_attempts: int,
        backoff_initial_s: float,
        backoff_max_s: float,
    ) -> None:
        """Health-check loop with supervised reconnect.

        While healthy, pings every interval_s. After a failed ping the pooled
        connections are disposed (the next checkout reconnects) and the check
        is retried with exponential backoff. Returns when the pool leaves the
        open state; raises PoolFatalError after max_attempts consecutive
        failures.
        """
        while self._state is PoolState.open:
            if self._consecutive_failures == 0:
                delay = interval_s
            else:
                delay = min(
                    backoff_initial_s * 2 ** (self._consecutive_failures - 1),
                    backoff_max_s,
                )
            await asyncio.sleep(delay)

            if self._state is not PoolState.open:
                return
            if await self.check():
                continue

            if self._consecutive_failures >= max_attempts:
                logger.error(
                    "pool_fatal",
                    attempts=self._consecutive_failures,
                    error=self._last_error,
                )
                raise PoolFatalError(
                    f"Database unreachable after {self._consecutive_failures} attempts: "
                    f"{self._last_error}"
                )
            await self._engine.dispose()

    async def drain_and_close(self, timeout_s: float) -> None:
        """Stop acquisitions, wait for outstanding releases, then dispose the engine.

        Connections still borrowed after timeout_s are abandoned to dispose().
        Calling this on a closed pool is a no-op.
        """
        if self._state in (PoolState.draining, PoolState.closed):
            return

        self._set_state(PoolState.draining)
        try:
            await asyncio.wait_for(self._released.wait(), timeout=timeout_s)
        except TimeoutError:
            logger.warning("pool_drain_timeout", in_use=self._in_use, timeout_s=timeout_s)

        await self._engine.dispose()
        self._set_state(PoolState.closed)
