"""Project membership tools."""

from __future__ import annotations

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show


class StoreProjectUserArgs(ToolArgs):
    username: NonEmptyStr
    email: str
    role: str = "developer"
    permissions: Metadata = Field(default_factory=dict)
    is_active: bool = True
    metadata: Metadata = Field(default_factory=dict)


class GetProjectUsersArgs(ReadArgs):
    role: str | None = None
    active_only: bool = True


class StoreProjectUserTool(BaseTool[StoreProjectUserArgs]):
    name = "store_project_user"
    description = "Add or update project user with role and permissions"
    args_model = StoreProjectUserArgs
    failure_label = "storing project user"
    kind = ToolKind.write

    async def run(self, args: StoreProjectUserArgs) -> str:
        await self._store.store_project_user(
            args.project_name,
            args.username,
            args.email,
            role=args.role,
            permissions=args.permissions,
            is_active=args.is_active,
            metadata=args.metadata,
        )
        return (
            f'Successfully stored user "{args.username}" with role "{args.role}" '
            f'in project "{args.project_name}"'
        )


class GetProjectUsersTool(BaseTool[GetProjectUsersArgs]):
    name = "get_project_users"
    description = "Retrieve project users and their roles"
    args_model = GetProjectUsersArgs
    failure_label = "retrieving project users"

    async def run(self, args: GetProjectUsersArgs) -> str:
        rows = await self._store.get_project_users(
            args.project_name,
            args.role,
            active_only=args.active_only,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "users",
                args.project_name,
                qualify('with role "{}"', args.role),
                qualify("(active only)", args.active_only),
            )
        return render_records(
            rows,
            lambda r: (
                f"Username: {r['username']}\n"
                f"Email: {r['email']}\n"
                f"Role: {r['role']}\n"
                f"Active: {show(r['is_active'])}\n"
                f"Last Active: {show(r['last_active'], 'Never')}"
            ),
        )
