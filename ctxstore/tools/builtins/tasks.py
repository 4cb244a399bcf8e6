"""Task, issue and ticket tools."""

from __future__ import annotations

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show


class StoreProjectTaskArgs(ToolArgs):
    task_id: NonEmptyStr
    title: str
    description: str | None = None
    status: str = "open"
    priority: str = "medium"
    task_type: str = "feature"
    assignee: str | None = None
    reporter: str | None = None
    metadata: Metadata = Field(default_factory=dict)


class GetProjectTasksArgs(ReadArgs):
    status: str | None = None
    assignee: str | None = None
    priority: str | None = None
    task_type: str | None = None


class StoreProjectTaskTool(BaseTool[StoreProjectTaskArgs]):
    name = "store_project_task"
    description = "Store or update project tasks, issues, and tickets"
    args_model = StoreProjectTaskArgs
    failure_label = "storing project task"
    kind = ToolKind.write

    async def run(self, args: StoreProjectTaskArgs) -> str:
        await self._store.store_project_task(
            args.project_name,
            args.task_id,
            args.title,
            description=args.description,
            status=args.status,
            priority=args.priority,
            task_type=args.task_type,
            assignee=args.assignee,
            reporter=args.reporter,
            metadata=args.metadata,
        )
        return (
            f'Successfully stored task "{args.task_id}" ({args.title}) '
            f'in project "{args.project_name}"'
        )


class GetProjectTasksTool(BaseTool[GetProjectTasksArgs]):
    """List tasks, most urgent priority first, newest first within a priority."""

    name = "get_project_tasks"
    description = "Retrieve project tasks with filtering options"
    args_model = GetProjectTasksArgs
    failure_label = "retrieving project tasks"

    async def run(self, args: GetProjectTasksArgs) -> str:
        rows = await self._store.get_project_tasks(
            args.project_name,
            args.status,
            args.assignee,
            args.priority,
            args.task_type,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "tasks",
                args.project_name,
                qualify('with status "{}"', args.status),
                qualify('assigned to "{}"', args.assignee),
                qualify('with priority "{}"', args.priority),
                qualify('of type "{}"', args.task_type),
            )
        return render_records(
            rows,
            lambda r: (
                f"ID: {r['task_id']}\n"
                f"Title: {r['title']}\n"
                f"Status: {r['status']}\n"
                f"Priority: {r['priority']}\n"
                f"Type: {r['task_type']}\n"
                f"Assignee: {show(r['assignee'], 'Unassigned')}\n"
                f"Created: {show(r['created_at'])}"
            ),
        )
