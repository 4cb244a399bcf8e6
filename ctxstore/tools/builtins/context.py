"""Project context tools: one current document per (project, context type)."""

from __future__ import annotations

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show


class StoreContextArgs(ToolArgs):
    context_type: NonEmptyStr
    content: str
    metadata: Metadata = Field(default_factory=dict)


class GetContextArgs(ReadArgs):
    context_type: str | None = None


class StoreContextTool(BaseTool[StoreContextArgs]):
    """Create or replace the context document of a given type."""

    name = "store_context"
    description = "Store project context information"
    args_model = StoreContextArgs
    failure_label = "storing context"
    kind = ToolKind.write

    async def run(self, args: StoreContextArgs) -> str:
        await self._store.store_context(
            args.project_name, args.context_type, args.content, args.metadata
        )
        return (
            f'Successfully stored context for project "{args.project_name}" '
            f'with type "{args.context_type}"'
        )


class GetContextTool(BaseTool[GetContextArgs]):
    name = "get_context"
    description = "Retrieve project context information"
    args_model = GetContextArgs
    failure_label = "retrieving context"

    async def run(self, args: GetContextArgs) -> str:
        rows = await self._store.get_context(
            args.project_name, args.context_type, **args.limit_kwargs()
        )
        if not rows:
            return not_found(
                "context",
                args.project_name,
                qualify('with type "{}"', args.context_type),
            )
        return render_records(
            rows,
            lambda r: (
                f"Type: {r['context_type']}\n"
                f"Content: {r['content']}\n"
                f"Updated: {show(r['updated_at'])}"
            ),
        )
