"""Package dependency tools."""

from __future__ import annotations

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show


class StoreProjectDependencyArgs(ToolArgs):
    package_name: NonEmptyStr
    version: str
    package_manager: str
    dependency_type: str = "production"
    license: str | None = None
    description: str | None = None
    is_active: bool = True
    metadata: Metadata = Field(default_factory=dict)


class GetProjectDependenciesArgs(ReadArgs):
    package_manager: str | None = None
    dependency_type: str | None = None
    active_only: bool = True


class StoreProjectDependencyTool(BaseTool[StoreProjectDependencyArgs]):
    name = "store_project_dependency"
    description = "Store project dependencies and package versions"
    args_model = StoreProjectDependencyArgs
    failure_label = "storing project dependency"
    kind = ToolKind.write

    async def run(self, args: StoreProjectDependencyArgs) -> str:
        await self._store.store_project_dependency(
            args.project_name,
            args.package_name,
            args.version,
            args.package_manager,
            dependency_type=args.dependency_type,
            license=args.license,
            description=args.description,
            is_active=args.is_active,
            metadata=args.metadata,
        )
        return (
            f'Successfully stored dependency "{args.package_name}@{args.version}" '
            f'({args.package_manager}) in project "{args.project_name}"'
        )


class GetProjectDependenciesTool(BaseTool[GetProjectDependenciesArgs]):
    name = "get_project_dependencies"
    description = "Retrieve project dependencies with filtering"
    args_model = GetProjectDependenciesArgs
    failure_label = "retrieving project dependencies"

    async def run(self, args: GetProjectDependenciesArgs) -> str:
        rows = await self._store.get_project_dependencies(
            args.project_name,
            args.package_manager,
            args.dependency_type,
            active_only=args.active_only,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "dependencies",
                args.project_name,
                qualify('with package manager "{}"', args.package_manager),
                qualify('of type "{}"', args.dependency_type),
            )
        return render_records(
            rows,
            lambda r: (
                f"Package: {r['package_name']}@{r['version']}\n"
                f"Manager: {r['package_manager']}\n"
                f"Type: {r['dependency_type']}\n"
                f"License: {show(r['license'], 'Unknown')}\n"
                f"Installed: {show(r['installed_at'])}"
            ),
        )
