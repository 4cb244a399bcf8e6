"""File history tools: versioned snapshots of file contents."""

from __future__ import annotations

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show


class StoreFileHistoryArgs(ToolArgs):
    file_path: NonEmptyStr
    content: str
    author: NonEmptyStr
    commit_hash: str | None = None
    change_description: str | None = None
    metadata: Metadata = Field(default_factory=dict)


class GetFileHistoryArgs(ReadArgs):
    file_path: str | None = None
    author: str | None = None


class StoreFileHistoryTool(BaseTool[StoreFileHistoryArgs]):
    """Append the next version of a file; checksum and size are derived from content."""

    name = "store_file_history"
    description = "Store file version history with changes tracking"
    args_model = StoreFileHistoryArgs
    failure_label = "storing file history"
    kind = ToolKind.write

    async def run(self, args: StoreFileHistoryArgs) -> str:
        result = await self._store.store_file_history(
            args.project_name,
            args.file_path,
            args.content,
            args.author,
            commit_hash=args.commit_hash,
            change_description=args.change_description,
            metadata=args.metadata,
        )
        return (
            f'Successfully stored file history for "{args.file_path}" in project '
            f'"{args.project_name}" (version {result.version_number})'
        )


class GetFileHistoryTool(BaseTool[GetFileHistoryArgs]):
    name = "get_file_history"
    description = "Retrieve file version history"
    args_model = GetFileHistoryArgs
    failure_label = "retrieving file history"

    async def run(self, args: GetFileHistoryArgs) -> str:
        rows = await self._store.get_file_history(
            args.project_name, args.file_path, args.author, **args.limit_kwargs()
        )
        if not rows:
            return not_found(
                "file history",
                args.project_name,
                qualify('and file "{}"', args.file_path),
                qualify('by author "{}"', args.author),
            )
        return render_records(
            rows,
            lambda r: (
                f"Version {r['version_number']} - {r['file_path']}\n"
                f"Author: {r['author']}\n"
                f"Date: {show(r['created_at'])}\n"
                f"Changes: {show(r['change_description'], 'No description')}\n"
                f"Commit: {show(r['commit_hash'])}\n"
                f"Checksum: {r['checksum']} ({r['file_size']} bytes)"
            ),
        )
