"""Component catalog and component relationship graph tools."""

from __future__ import annotations

from pydantic import Field

from ctxstore.tools.base import BaseTool, Metadata, NonEmptyStr, ReadArgs, ToolArgs, ToolKind
from ctxstore.tools.formatting import not_found, qualify, render_records, show


class StoreProjectComponentArgs(ToolArgs):
    component_name: NonEmptyStr
    component_type: NonEmptyStr
    file_path: str | None = None
    description: str | None = None
    version: str | None = None
    is_active: bool = True
    metadata: Metadata = Field(default_factory=dict)


class StoreComponentRelationshipArgs(ToolArgs):
    source_component: NonEmptyStr
    target_component: NonEmptyStr
    relationship_type: NonEmptyStr
    strength: int = Field(default=1, ge=1, le=10)
    description: str | None = None
    is_directed: bool = True
    metadata: Metadata = Field(default_factory=dict)


class GetProjectComponentsArgs(ReadArgs):
    component_type: str | None = None
    active_only: bool = True


class GetComponentRelationshipsArgs(ReadArgs):
    source_component: str | None = None
    target_component: str | None = None
    relationship_type: str | None = None


class StoreProjectComponentTool(BaseTool[StoreProjectComponentArgs]):
    name = "store_project_component"
    description = "Store project components and modules"
    args_model = StoreProjectComponentArgs
    failure_label = "storing project component"
    kind = ToolKind.write

    async def run(self, args: StoreProjectComponentArgs) -> str:
        await self._store.store_project_component(
            args.project_name,
            args.component_name,
            args.component_type,
            file_path=args.file_path,
            description=args.description,
            version=args.version,
            is_active=args.is_active,
            metadata=args.metadata,
        )
        return (
            f'Successfully stored component "{args.component_name}" '
            f'({args.component_type}) in project "{args.project_name}"'
        )


class StoreComponentRelationshipTool(BaseTool[StoreComponentRelationshipArgs]):
    name = "store_component_relationship"
    description = "Store relationships between components"
    args_model = StoreComponentRelationshipArgs
    failure_label = "storing component relationship"
    kind = ToolKind.write

    async def run(self, args: StoreComponentRelationshipArgs) -> str:
        await self._store.store_component_relationship(
            args.project_name,
            args.source_component,
            args.target_component,
            args.relationship_type,
            strength=args.strength,
            description=args.description,
            is_directed=args.is_directed,
            metadata=args.metadata,
        )
        return (
            f"Successfully stored relationship: {args.source_component} "
            f"{args.relationship_type} {args.target_component} "
            f'in project "{args.project_name}"'
        )


class GetProjectComponentsTool(BaseTool[GetProjectComponentsArgs]):
    name = "get_project_components"
    description = "Retrieve project components"
    args_model = GetProjectComponentsArgs
    failure_label = "retrieving project components"

    async def run(self, args: GetProjectComponentsArgs) -> str:
        rows = await self._store.get_project_components(
            args.project_name,
            args.component_type,
            active_only=args.active_only,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "components",
                args.project_name,
                qualify('of type "{}"', args.component_type),
                qualify("(active only)", args.active_only),
            )
        return render_records(
            rows,
            lambda r: (
                f"Name: {r['component_name']}\n"
                f"Type: {r['component_type']}\n"
                f"File: {show(r['file_path'])}\n"
                f"Version: {show(r['version'])}\n"
                f"Description: {show(r['description'])}\n"
                f"Active: {show(r['is_active'])}\n"
                f"Updated: {show(r['updated_at'])}"
            ),
        )


class GetComponentRelationshipsTool(BaseTool[GetComponentRelationshipsArgs]):
    name = "get_component_relationships"
    description = "Retrieve component relationships"
    args_model = GetComponentRelationshipsArgs
    failure_label = "retrieving component relationships"

    async def run(self, args: GetComponentRelationshipsArgs) -> str:
        rows = await self._store.get_component_relationships(
            args.project_name,
            args.source_component,
            args.target_component,
            args.relationship_type,
            **args.limit_kwargs(),
        )
        if not rows:
            return not_found(
                "component relationships",
                args.project_name,
                qualify('from "{}"', args.source_component),
                qualify('to "{}"', args.target_component),
                qualify('of type "{}"', args.relationship_type),
            )
        return render_records(
            rows,
            lambda r: (
                f"{r['source_component']} {r['relationship_type']} {r['target_component']}\n"
                f"Strength: {r['strength']}/10\n"
                f"Directed: {show(r['is_directed'])}\n"
                f"Description: {show(r['description'])}\n"
                f"Created: {show(r['created_at'])}"
            ),
        )
