"""Activity log tools: an append-only audit trail."""

from __future__ import annotations

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show


class LogActivityArgs(ToolArgs):
    activity_type: NonEmptyStr
    actor: NonEmptyStr
    target: str
    action: NonEmptyStr
    details: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: Metadata = Field(default_factory=dict)


class GetActivityLogsArgs(ReadArgs):
    activity_type: str | None = None
    actor: str | None = None
    target: str | None = None


class LogActivityTool(BaseTool[LogActivityArgs]):
    name = "log_activity"
    description = "Log project activities and audit trail"
    args_model = LogActivityArgs
    failure_label = "logging activity"
    kind = ToolKind.write

    async def run(self, args: LogActivityArgs) -> str:
        await self._store.log_activity(
            args.project_name,
            args.activity_type,
            args.actor,
            args.target,
            args.action,
            details=args.details,
            ip_address=args.ip_address,
            user_agent=args.user_agent,
            metadata=args.metadata,
        )
        return (
            f"Successfully logged activity: {args.actor} {args.action} {args.target} "
            f'({args.activity_type}) in project "{args.project_name}"'
        )


class GetActivityLogsTool(BaseTool[GetActivityLogsArgs]):
    name = "get_activity_logs"
    description = "Retrieve project activity logs"
    args_model = GetActivityLogsArgs
    failure_label = "retrieving activity logs"

    async def run(self, args: GetActivityLogsArgs) -> str:
        rows = await self._store.get_activity_logs(
            args.project_name,
            args.activity_type,
            args.actor,
            args.target,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "activity logs",
                args.project_name,
                qualify('of type "{}"', args.activity_type),
                qualify('by actor "{}"', args.actor),
                qualify('on target "{}"', args.target),
            )
        return render_records(
            rows,
            lambda r: (
                f"[{show(r['timestamp'])}] {r['activity_type']}: "
                f"{r['actor']} {r['action']} {r['target']}\n"
                f"Details: {show(r['details'])}\n"
                f"IP: {show(r['ip_address'])}"
            ),
        )
