"""Unit tests for PersistenceManager statement shape and error translation.

No database: the pool yields a mock connection and statements are compiled
with the PostgreSQL dialect.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy.dialects import postgresql

from ctxstore.infra.errors import (
    ConstraintViolationError,
    PersistenceError,
    RecordNotFoundError,
)
from ctxstore.storage.persistence import PersistenceManager

TS = datetime(2026, 3, 1, tzinfo=UTC)


class FakePool:
    def __init__(self, conn: MagicMock | None = None, error: Exception | None = None) -> None:
        self.conn = conn or MagicMock()
        self.error = error

    @asynccontextmanager
    async def acquire(self):
        if self.error is not None:
            raise self.error
        yield self.conn


def _conn_returning(row) -> MagicMock:
    result = MagicMock()
    result.one.return_value = row
    result.one_or_none.return_value = row
    result.scalar_one.return_value = row[0] if row else None
    conn = MagicMock()
    conn.execute = AsyncMock(return_value=result)
    return conn


def _sql(conn: MagicMock, call: int = 0) -> str:
    stmt = conn.execute.await_args_list[call].args[0]
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestUpsertShape:
    @pytest.mark.asyncio
    async def test_context_upsert_on_natural_key(self) -> None:
        conn = _conn_returning((1, TS, TS))
        store = PersistenceManager(FakePool(conn))

        result = await store.store_context("p", "architecture", "body")

        assert result.id == 1
        sql = _sql(conn)
        assert "ON CONFLICT (project_name, context_type) DO UPDATE" in sql
        assert "updated_at = now()" in sql
        assert "RETURNING" in sql

    @pytest.mark.asyncio
    async def test_environment_key_has_three_columns(self) -> None:
        conn = _conn_returning((1, TS, TS))
        store = PersistenceManager(FakePool(conn))
        await store.store_environment_config("p", "prod", "KEY", "v", is_sensitive=True)
        assert "ON CONFLICT (project_name, environment_name, config_key)" in _sql(conn)

    @pytest.mark.asyncio
    async def test_build_upsert_returns_start_time(self) -> None:
        conn = _conn_returning((3, TS, TS))
        store = PersistenceManager(FakePool(conn))
        result = await store.store_build("p", "42", "ci", "running")
        assert result.created_at == TS
        returning = _sql(conn).split("RETURNING", 1)[1]
        assert "start_time" in returning

    @pytest.mark.asyncio
    async def test_conversation_is_plain_insert(self) -> None:
        conn = _conn_returning((5, TS))
        store = PersistenceManager(FakePool(conn))
        await store.store_conversation("p", "c1", "user", "hi")
        sql = _sql(conn)
        assert sql.startswith("INSERT INTO ctxstore.conversation_history")
        assert "ON CONFLICT" not in sql


class TestFileHistory:
    @pytest.mark.asyncio
    async def test_counter_bumped_then_row_inserted_in_one_transaction(self) -> None:
        conn = MagicMock()
        bump = MagicMock()
        bump.scalar_one.return_value = 4
        insert = MagicMock()
        insert.one.return_value = (11, TS)
        conn.execute = AsyncMock(side_effect=[bump, insert])
        store = PersistenceManager(FakePool(conn))

        result = await store.store_file_history("p", "a.py", "print(1)", "ana")

        assert result.version_number == 4
        assert "last_version + " in _sql(conn, 0)
        insert_stmt = conn.execute.await_args_list[1].args[0]
        params = insert_stmt.compile(dialect=postgresql.dialect()).params
        assert params["version_number"] == 4
        assert params["file_size"] == 8
        assert len(params["checksum"]) == 64


class TestBuildStatus:
    @pytest.mark.asyncio
    async def test_missing_build_raises_not_found(self) -> None:
        conn = _conn_returning(None)
        store = PersistenceManager(FakePool(conn))
        with pytest.raises(RecordNotFoundError) as exc_info:
            await store.update_build_status("p", "404", "failed")
        assert exc_info.value.code == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_optional_columns_untouched_when_omitted(self) -> None:
        conn = _conn_returning((1, TS, TS))
        store = PersistenceManager(FakePool(conn))
        await store.update_build_status("p", "42", "success")
        sql = _sql(conn)
        assert "end_time=now()" in sql
        assert "duration_seconds" not in sql
        assert "logs" not in sql

    @pytest.mark.asyncio
    async def test_supplied_columns_written(self) -> None:
        conn = _conn_returning((1, TS, TS))
        store = PersistenceManager(FakePool(conn))
        await store.update_build_status(
            "p", "42", "success", end_time=TS, duration_seconds=90, logs="ok"
        )
        sql = _sql(conn)
        assert "duration_seconds=" in sql
        assert "logs=" in sql


class TestReadShape:
    @pytest.mark.asyncio
    async def test_tasks_ordered_by_priority_rank(self) -> None:
        result = MagicMock()
        result.mappings.return_value.all.return_value = []
        conn = MagicMock()
        conn.execute = AsyncMock(return_value=result)
        store = PersistenceManager(FakePool(conn))

        assert await store.get_project_tasks("p", status="open") == []
        sql = _sql(conn)
        assert "ORDER BY CASE ctxstore.project_tasks.priority" in sql
        assert "LIMIT" in sql

    @pytest.mark.asyncio
    async def test_rows_returned_as_dicts(self) -> None:
        result = MagicMock()
        result.mappings.return_value.all.return_value = [{"id": 1, "content": "x"}]
        conn = MagicMock()
        conn.execute = AsyncMock(return_value=result)
        store = PersistenceManager(FakePool(conn))

        rows = await store.get_context("p")
        assert rows == [{"id": 1, "content": "x"}]


class TestErrorTranslation:
    @pytest.mark.asyncio
    async def test_integrity_error(self) -> None:
        err = sa_exc.IntegrityError("INSERT", {}, Exception("duplicate key value"))
        store = PersistenceManager(FakePool(error=err))
        with pytest.raises(ConstraintViolationError, match="duplicate key value"):
            await store.store_context("p", "t", "c")

    @pytest.mark.asyncio
    async def test_other_engine_error(self) -> None:
        err = sa_exc.OperationalError("SELECT", {}, Exception("server closed the connection"))
        store = PersistenceManager(FakePool(error=err))
        with pytest.raises(PersistenceError) as exc_info:
            await store.get_context("p")
        assert exc_info.value.code == "QUERY_FAILED"
        assert "server closed the connection" in str(exc_info.value)
