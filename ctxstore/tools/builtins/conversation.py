"""Conversation history tools: an append-only ledger of turns."""

from __future__ import annotations

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, show


class StoreConversationArgs(ToolArgs):
    conversation_id: NonEmptyStr
    message_type: NonEmptyStr
    content: str
    metadata: Metadata = Field(default_factory=dict)


class GetConversationHistoryArgs(ReadArgs):
    conversation_id: str | None = None
    message_type: str | None = None


class StoreConversationTool(BaseTool[StoreConversationArgs]):
    name = "store_conversation"
    description = "Store conversation history"
    args_model = StoreConversationArgs
    failure_label = "storing conversation"
    kind = ToolKind.write

    async def run(self, args: StoreConversationArgs) -> str:
        await self._store.store_conversation(
            args.project_name,
            args.conversation_id,
            args.message_type,
            args.content,
            args.metadata,
        )
        return (
            f"Successfully stored {args.message_type} message for conversation "
            f'"{args.conversation_id}" in project "{args.project_name}"'
        )


class GetConversationHistoryTool(BaseTool[GetConversationHistoryArgs]):
    """Fetch the most recent turns, rendered as a transcript (oldest first)."""

    name = "get_conversation_history"
    description = "Retrieve conversation history"
    args_model = GetConversationHistoryArgs
    failure_label = "retrieving conversation history"

    async def run(self, args: GetConversationHistoryArgs) -> str:
        rows = await self._store.get_conversation_history(
            args.project_name,
            args.conversation_id,
            args.message_type,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "conversation history",
                args.project_name,
                qualify('and conversation "{}"', args.conversation_id),
                qualify('with message type "{}"', args.message_type),
            )
        return "\n".join(
            f"[{show(r['timestamp'])}] {r['message_type']}: {r['content']}"
            for r in reversed(rows)
        )
