"""Build tools: record builds, transition their status, list history."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import Field, field_validator

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show


class StoreBuildArgs(ToolArgs):
    build_number: NonEmptyStr
    build_type: NonEmptyStr
    status: NonEmptyStr
    branch_name: str | None = None
    commit_hash: str | None = None
    triggered_by: str | None = None
    test_results: Metadata = Field(default_factory=dict)
    metadata: Metadata = Field(default_factory=dict)


class UpdateBuildStatusArgs(ToolArgs):
    build_number: NonEmptyStr
    status: NonEmptyStr
    # ISO-8601 string on the wire, so this field is parsed leniently.
    end_time: datetime | None = Field(default=None, strict=False)
    duration_seconds: int | None = Field(default=None, ge=0)
    logs: str | None = None

    @field_validator("end_time")
    @classmethod
    def _assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class GetBuildHistoryArgs(ReadArgs):
    status: str | None = None
    branch_name: str | None = None
    build_type: str | None = None


class StoreBuildTool(BaseTool[StoreBuildArgs]):
    name = "store_build"
    description = "Store build information and test results"
    args_model = StoreBuildArgs
    failure_label = "storing build"
    kind = ToolKind.write

    async def run(self, args: StoreBuildArgs) -> str:
        await self._store.store_build(
            args.project_name,
            args.build_number,
            args.build_type,
            args.status,
            branch_name=args.branch_name,
            commit_hash=args.commit_hash,
            triggered_by=args.triggered_by,
            test_results=args.test_results,
            metadata=args.metadata,
        )
        return (
            f'Successfully stored build "{args.build_number}" ({args.build_type}) '
            f'with status "{args.status}" in project "{args.project_name}"'
        )


class UpdateBuildStatusTool(BaseTool[UpdateBuildStatusArgs]):
    """Move an existing build to a new status; end time defaults to now."""

    name = "update_build_status"
    description = "Update build status and completion information"
    args_model = UpdateBuildStatusArgs
    failure_label = "updating build status"
    kind = ToolKind.write

    async def run(self, args: UpdateBuildStatusArgs) -> str:
        await self._store.update_build_status(
            args.project_name,
            args.build_number,
            args.status,
            end_time=args.end_time,
            duration_seconds=args.duration_seconds,
            logs=args.logs,
        )
        return (
            f'Successfully updated build "{args.build_number}" status to "{args.status}" '
            f'in project "{args.project_name}"'
        )


def _render_build(r: Mapping[str, Any]) -> str:
    duration = r["duration_seconds"]
    return (
        f"Build: {r['build_number']}\n"
        f"Type: {r['build_type']}\n"
        f"Status: {r['status']}\n"
        f"Branch: {show(r['branch_name'])}\n"
        f"Triggered by: {show(r['triggered_by'], 'Unknown')}\n"
        f"Started: {show(r['start_time'])}\n"
        f"Finished: {show(r['end_time'])}\n"
        f"Duration: {f'{duration}s' if duration is not None else 'N/A'}"
    )


class GetBuildHistoryTool(BaseTool[GetBuildHistoryArgs]):
    name = "get_build_history"
    description = "Retrieve build history with filtering options"
    args_model = GetBuildHistoryArgs
    failure_label = "retrieving build history"

    async def run(self, args: GetBuildHistoryArgs) -> str:
        rows = await self._store.get_build_history(
            args.project_name,
            args.status,
            args.branch_name,
            args.build_type,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "build history",
                args.project_name,
                qualify('with status "{}"', args.status),
                qualify('on branch "{}"', args.branch_name),
                qualify('of type "{}"', args.build_type),
            )
        return render_records(rows, _render_build)
