"""Environment configuration tools. Sensitive values are stored but never echoed."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show

MASK = "[SENSITIVE]"


class StoreEnvironmentConfigArgs(ToolArgs):
    environment_name: NonEmptyStr
    config_key: NonEmptyStr
    config_value: str
    is_sensitive: bool = False
    description: str | None = None
    metadata: Metadata = Field(default_factory=dict)


class GetEnvironmentConfigsArgs(ReadArgs):
    environment_name: str | None = None
    include_sensitive: bool = False


class StoreEnvironmentConfigTool(BaseTool[StoreEnvironmentConfigArgs]):
    name = "store_environment_config"
    description = "Store environment variables and configurations"
    args_model = StoreEnvironmentConfigArgs
    failure_label = "storing environment config"
    kind = ToolKind.write

    async def run(self, args: StoreEnvironmentConfigArgs) -> str:
        await self._store.store_environment_config(
            args.project_name,
            args.environment_name,
            args.config_key,
            args.config_value,
            is_sensitive=args.is_sensitive,
            description=args.description,
            metadata=args.metadata,
        )
        return (
            f'Successfully stored config "{args.config_key}" for environment '
            f'"{args.environment_name}" in project "{args.project_name}"'
        )


def _render_config(r: Mapping[str, Any]) -> str:
    value = MASK if r["is_sensitive"] else r["config_value"]
    return (
        f"Environment: {r['environment_name']}\n"
        f"Key: {r['config_key']}\n"
        f"Value: {value}\n"
        f"Sensitive: {show(r['is_sensitive'])}\n"
        f"Description: {show(r['description'])}"
    )


class GetEnvironmentConfigsTool(BaseTool[GetEnvironmentConfigsArgs]):
    """List configs; sensitive rows are skipped unless includeSensitive, and always masked."""

    name = "get_environment_configs"
    description = "Retrieve environment configurations"
    args_model = GetEnvironmentConfigsArgs
    failure_label = "retrieving environment configs"

    async def run(self, args: GetEnvironmentConfigsArgs) -> str:
        rows = await self._store.get_environment_configs(
            args.project_name,
            args.environment_name,
            include_sensitive=args.include_sensitive,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "environment configs",
                args.project_name,
                qualify('in environment "{}"', args.environment_name),
            )
        return render_records(rows, _render_config)
