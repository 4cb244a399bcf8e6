"""Tests for pydantic-settings configuration classes."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ctxstore.config.settings import (
    DatabaseSettings,
    LoggingSettings,
    ServerSettings,
    Settings,
    SupervisorSettings,
)


class TestDatabaseSettings:
    def test_defaults(self) -> None:
        s = DatabaseSettings()
        assert s.name == "mcp_context"
        assert s.user == "mcp_user"
        assert s.pool_size == 10
        assert s.max_overflow == 0
        assert s.pool_timeout_s == 2.0
        assert s.pool_recycle_s == 1800

    def test_url_uses_asyncpg_driver(self) -> None:
        s = DatabaseSettings(host="db", port=6543, user="u", password="p", name="n")
        assert s.url == "postgresql+asyncpg://u:p@db:6543/n"

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_HOST", "pg.internal")
        monkeypatch.setenv("DATABASE_POOL_SIZE", "4")
        s = DatabaseSettings()
        assert s.host == "pg.internal"
        assert s.pool_size == 4

    def test_foreign_schema_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_SCHEMA", "public")
        with pytest.raises(ValidationError, match="DATABASE_SCHEMA must be 'ctxstore'"):
            DatabaseSettings()

    def test_zero_pool_size_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseSettings(pool_size=0)


class TestSupervisorSettings:
    def test_defaults(self) -> None:
        s = SupervisorSettings()
        assert s.max_attempts == 5
        assert s.backoff_initial_s <= s.backoff_max_s

    def test_initial_backoff_above_max_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not exceed"):
            SupervisorSettings(backoff_initial_s=20, backoff_max_s=10)


class TestLoggingSettings:
    def test_level_normalised(self) -> None:
        assert LoggingSettings(level="debug").level == "DEBUG"

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="LOG_LEVEL must be one of"):
            LoggingSettings(level="verbose")


class TestRootSettings:
    def test_composes_sections(self) -> None:
        s = Settings()
        assert s.server == ServerSettings()
        assert s.server.name == "context-storage-server"
        assert s.database.schema_ == "ctxstore"
