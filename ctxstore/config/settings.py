from __future__ import annotations

from typing import Self

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ctxstore.constants import DB_SCHEMA

# Load .env once at import so every BaseSettings subclass sees the env vars
load_dotenv()


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection and pool settings. Env vars prefixed with DATABASE_."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    host: str = "localhost"
    port: int = 5432
    user: str = "mcp_user"
    password: str = ""
    name: str = "mcp_context"
    schema_: str = Field(DB_SCHEMA, validation_alias="DATABASE_SCHEMA")

    # Pool sizing: at most pool_size + max_overflow live connections.
    pool_size: int = Field(10, gt=0, le=100)
    max_overflow: int = Field(0, ge=0, le=100)
    pool_timeout_s: float = Field(2.0, gt=0)  # acquisition wait before POOL_TIMEOUT
    # Age limit checked on checkout, not an idle timeout.
    pool_recycle_s: int = Field(1800, gt=0)
    connect_timeout_s: float = Field(5.0, gt=0)
    auto_create_schema: bool = True

    @field_validator("schema_")
    @classmethod
    def _validate_schema(cls, v: str) -> str:
        if v != DB_SCHEMA:
            msg = f"DATABASE_SCHEMA must be '{DB_SCHEMA}' (got '{v}')."
            raise ValueError(msg)
        return v

    @property
    def url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.name}"
        )


class SupervisorSettings(BaseSettings):
    """Pool health supervision and reconnect backoff. Env vars prefixed with SUPERVISOR_."""

    model_config = SettingsConfigDict(env_prefix="SUPERVISOR_")

    interval_s: float = Field(30.0, gt=0)
    max_attempts: int = Field(5, gt=0, le=100)
    backoff_initial_s: float = Field(0.5, gt=0)
    backoff_max_s: float = Field(10.0, gt=0)

    @model_validator(mode="after")
    def _validate(self) -> Self:
        if self.backoff_initial_s > self.backoff_max_s:
            raise ValueError(
                f"backoff_initial_s ({self.backoff_initial_s}) must not exceed "
                f"backoff_max_s ({self.backoff_max_s})"
            )
        return self


class GatewaySettings(BaseSettings):
    """WebSocket gateway settings. Env vars prefixed with GATEWAY_."""

    model_config = SettingsConfigDict(env_prefix="GATEWAY_")

    host: str = "127.0.0.1"
    port: int = 19790


class ServerSettings(BaseSettings):
    """Server identity and lifecycle settings. Env vars prefixed with SERVER_."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    name: str = "context-storage-server"
    version: str = "1.0.0"
    shutdown_grace_s: float = Field(10.0, ge=0)


class LoggingSettings(BaseSettings):
    """Log output settings. Env vars prefixed with LOG_."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = "INFO"
    json_output: bool = True

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        level = v.upper()
        if level not in allowed:
            msg = f"LOG_LEVEL must be one of {sorted(allowed)} (got '{v}')"
            raise ValueError(msg)
        return level


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    supervisor: SupervisorSettings = Field(default_factory=SupervisorSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
