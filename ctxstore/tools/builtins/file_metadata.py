"""File metadata tools: the current descriptive record for each path."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show


class StoreFileMetadataArgs(ToolArgs):
    file_path: NonEmptyStr
    file_name: NonEmptyStr
    file_extension: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    file_type: str | None = None
    language: str | None = None
    line_count: int | None = Field(default=None, ge=0)
    last_author: str | None = None
    checksum: str | None = None
    is_binary: bool = False
    is_generated: bool = False
    metadata: Metadata = Field(default_factory=dict)


class GetFileMetadataArgs(ReadArgs):
    file_type: str | None = None
    language: str | None = None
    include_binary: bool = False


class StoreFileMetadataTool(BaseTool[StoreFileMetadataArgs]):
    name = "store_file_metadata"
    description = "Store file metadata and properties"
    args_model = StoreFileMetadataArgs
    failure_label = "storing file metadata"
    kind = ToolKind.write

    async def run(self, args: StoreFileMetadataArgs) -> str:
        await self._store.store_file_metadata(
            args.project_name,
            args.file_path,
            args.file_name,
            file_extension=args.file_extension,
            file_size=args.file_size,
            file_type=args.file_type,
            language=args.language,
            line_count=args.line_count,
            last_author=args.last_author,
            checksum=args.checksum,
            is_binary=args.is_binary,
            is_generated=args.is_generated,
            metadata=args.metadata,
        )
        return (
            f'Successfully stored metadata for file "{args.file_name}" '
            f'in project "{args.project_name}"'
        )


def _render_file(r: Mapping[str, Any]) -> str:
    size = r["file_size"]
    return (
        f"File: {r['file_name']}\n"
        f"Path: {r['file_path']}\n"
        f"Type: {show(r['file_type'], 'Unknown')}\n"
        f"Language: {show(r['language'], 'Unknown')}\n"
        f"Size: {f'{size} bytes' if size is not None else 'Unknown'}\n"
        f"Lines: {show(r['line_count'], 'Unknown')}\n"
        f"Author: {show(r['last_author'], 'Unknown')}\n"
        f"Binary: {show(r['is_binary'])}\n"
        f"Generated: {show(r['is_generated'])}\n"
        f"Modified: {show(r['last_modified'])}"
    )


class GetFileMetadataTool(BaseTool[GetFileMetadataArgs]):
    name = "get_file_metadata"
    description = "Retrieve file metadata with filtering"
    args_model = GetFileMetadataArgs
    failure_label = "retrieving file metadata"

    async def run(self, args: GetFileMetadataArgs) -> str:
        rows = await self._store.get_file_metadata(
            args.project_name,
            args.file_type,
            args.language,
            include_binary=args.include_binary,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "file metadata",
                args.project_name,
                qualify('of type "{}"', args.file_type),
                qualify('in language "{}"', args.language),
                qualify("(excluding binary files)", not args.include_binary),
            )
        return render_records(rows, _render_file)
