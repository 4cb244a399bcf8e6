"""Documentation tools."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show

PREVIEW_CHARS = 500


class StoreDocumentationArgs(ToolArgs):
    doc_type: NonEmptyStr
    title: NonEmptyStr
    content: str
    format: str = "markdown"
    version: str | None = None
    author: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_published: bool = False
    external_url: str | None = None
    metadata: Metadata = Field(default_factory=dict)


class GetDocumentationArgs(ReadArgs):
    doc_type: str | None = None
    author: str | None = None
    published_only: bool = False


class StoreDocumentationTool(BaseTool[StoreDocumentationArgs]):
    name = "store_documentation"
    description = "Store project documentation and resources"
    args_model = StoreDocumentationArgs
    failure_label = "storing documentation"
    kind = ToolKind.write

    async def run(self, args: StoreDocumentationArgs) -> str:
        await self._store.store_documentation(
            args.project_name,
            args.doc_type,
            args.title,
            args.content,
            format=args.format,
            version=args.version,
            author=args.author,
            tags=args.tags,
            is_published=args.is_published,
            external_url=args.external_url,
            metadata=args.metadata,
        )
        return (
            f'Successfully stored documentation "{args.title}" ({args.doc_type}) '
            f'in project "{args.project_name}"'
        )


def preview(content: str, limit: int = PREVIEW_CHARS) -> str:
    return content[:limit] + ("..." if len(content) > limit else "")


def _render_doc(r: Mapping[str, Any]) -> str:
    tags = ", ".join(r["tags"] or [])
    return (
        f"Title: {r['title']}\n"
        f"Type: {r['doc_type']}\n"
        f"Format: {r['format']}\n"
        f"Author: {show(r['author'], 'Unknown')}\n"
        f"Version: {show(r['version'])}\n"
        f"Published: {show(r['is_published'])}\n"
        f"Tags: {tags or 'None'}\n"
        f"URL: {show(r['external_url'])}\n"
        f"Updated: {show(r['updated_at'])}\n"
        f"\n"
        f"Content:\n"
        f"{preview(r['content'])}"
    )


class GetDocumentationTool(BaseTool[GetDocumentationArgs]):
    """List documents with a content preview truncated to a fixed length."""

    name = "get_documentation"
    description = "Retrieve project documentation"
    args_model = GetDocumentationArgs
    failure_label = "retrieving documentation"

    async def run(self, args: GetDocumentationArgs) -> str:
        rows = await self._store.get_documentation(
            args.project_name,
            args.doc_type,
            args.author,
            published_only=args.published_only,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "documentation",
                args.project_name,
                qualify('of type "{}"', args.doc_type),
                qualify('by author "{}"', args.author),
                qualify("(published only)", args.published_only),
            )
        return render_records(rows, _render_doc)
