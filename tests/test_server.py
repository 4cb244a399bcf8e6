"""Tests for ContextStoreServer startup, fatal-pool reporting and shutdown."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ctxstore.config.settings import DatabaseSettings, ServerSettings, Settings
from ctxstore.infra.errors import PoolFatalError
from ctxstore.server import ContextStoreServer


def _settings(*, auto_create_schema: bool = True) -> Settings:
    return Settings(
        database=DatabaseSettings(auto_create_schema=auto_create_schema),
        server=ServerSettings(shutdown_grace_s=0.1),
    )


def _fake_pool(supervise=None) -> MagicMock:
    pool = MagicMock()
    pool.open = AsyncMock()
    pool.drain_and_close = AsyncMock(return_value=True)

    async def _idle(**kwargs):
        await asyncio.Event().wait()

    pool.supervise = supervise or _idle
    return pool


class TestStart:
    @pytest.mark.asyncio
    async def test_start_wires_router_and_schema(self) -> None:
        engine = MagicMock(dispose=AsyncMock())
        pool = _fake_pool()
        ensure = AsyncMock()

        with (
            patch("ctxstore.server.create_db_engine", return_value=engine),
            patch("ctxstore.server.ConnectionPool", return_value=pool),
            patch("ctxstore.server.ensure_schema", ensure),
        ):
            async with ContextStoreServer(_settings()) as server:
                assert len(server.router.list_tools()) == 27
                assert server.pool is pool

        pool.open.assert_awaited_once()
        ensure.assert_awaited_once_with(engine, "ctxstore")
        assert server.router.closed is True
        pool.drain_and_close.assert_awaited_once_with(0.1)

    @pytest.mark.asyncio
    async def test_schema_creation_can_be_disabled(self) -> None:
        ensure = AsyncMock()
        with (
            patch("ctxstore.server.create_db_engine", return_value=MagicMock()),
            patch("ctxstore.server.ConnectionPool", return_value=_fake_pool()),
            patch("ctxstore.server.ensure_schema", ensure),
        ):
            async with ContextStoreServer(_settings(auto_create_schema=False)):
                pass

        ensure.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreachable_database_fails_fast(self) -> None:
        engine = MagicMock(dispose=AsyncMock())
        pool = _fake_pool()
        pool.open.side_effect = OSError("connection refused")
        server = ContextStoreServer(_settings())

        with (
            patch("ctxstore.server.create_db_engine", return_value=engine),
            patch("ctxstore.server.ConnectionPool", return_value=pool),
            pytest.raises(OSError, match="connection refused"),
        ):
            await server.start()

        engine.dispose.assert_awaited_once()
        with pytest.raises(RuntimeError):
            _ = server.router

    def test_router_before_start_raises(self) -> None:
        server = ContextStoreServer(_settings())
        with pytest.raises(RuntimeError, match="not started"):
            _ = server.router


class TestWaitFatal:
    @pytest.mark.asyncio
    async def test_returns_fatal_error(self) -> None:
        async def _fail(**kwargs):
            raise PoolFatalError("Database unreachable after 5 attempts: refused")

        with (
            patch("ctxstore.server.create_db_engine", return_value=MagicMock()),
            patch("ctxstore.server.ConnectionPool", return_value=_fake_pool(_fail)),
            patch("ctxstore.server.ensure_schema", AsyncMock()),
        ):
            async with ContextStoreServer(_settings()) as server:
                fatal = await server.wait_fatal()

        assert isinstance(fatal, PoolFatalError)
        assert fatal.code == "POOL_FATAL"

    @pytest.mark.asyncio
    async def test_returns_none_when_supervision_ends(self) -> None:
        async def _done(**kwargs):
            return None

        with (
            patch("ctxstore.server.create_db_engine", return_value=MagicMock()),
            patch("ctxstore.server.ConnectionPool", return_value=_fake_pool(_done)),
            patch("ctxstore.server.ensure_schema", AsyncMock()),
        ):
            async with ContextStoreServer(_settings()) as server:
                assert await server.wait_fatal() is None
