"""Persistence operations for every project-knowledge entity.

One write and one read per entity, plus the build status transition.
Writes on upsert entities are a single INSERT ... ON CONFLICT DO UPDATE
keyed on the natural key; the engine's unique constraint decides races.
Append-only entities are plain INSERTs. Reads go through QueryBuilder.

Every operation borrows its own connection from the pool for exactly one
transaction. Engine errors are translated into PersistenceError subclasses.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import Table, case, func, insert, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from ctxstore.infra.errors import (
    ConstraintViolationError,
    PersistenceError,
    RecordNotFoundError,
)
from ctxstore.storage.checksum import content_checksum
from ctxstore.storage.models import (
    component_relationships,
    conversation_history,
    file_history,
    file_metadata,
    file_version_counters,
    project_activity_logs,
    project_builds,
    project_components,
    project_contexts,
    project_dependencies,
    project_documentation,
    project_environments,
    project_tasks,
    project_users,
)
from ctxstore.storage.query import QueryBuilder

if TYPE_CHECKING:
    from ctxstore.storage.pool import ConnectionPool

logger = structlog.get_logger()

Row = dict[str, Any]

# Task priorities sort most urgent first; unknown priorities go last.
PRIORITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}


@dataclass(frozen=True)
class WriteResult:
    """Identity and timestamps of the row a write created or updated."""

    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version_number: int | None = None


def _db_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class PersistenceManager:
    """Typed persistence operations over a shared ConnectionPool."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncConnection]:
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except IntegrityError as e:
            raise ConstraintViolationError(_db_message(e)) from e
        except SQLAlchemyError as e:
            raise PersistenceError(_db_message(e)) from e

    async def _upsert(
        self,
        table: Table,
        key: dict[str, Any],
        values: dict[str, Any],
        *,
        created_column: str = "created_at",
        refresh: Sequence[str] = ("updated_at",),
    ) -> WriteResult:
        """Insert, or overwrite the non-key columns and refresh timestamps on conflict."""
        stmt = pg_insert(table).values(**key, **values)
        set_: dict[str, Any] = {name: stmt.excluded[name] for name in values}
        for name in refresh:
            set_[name] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=list(key), set_=set_).returning(
            table.c.id, table.c[created_column], table.c.updated_at
        )

        async with self._transaction() as conn:
            row = (await conn.execute(stmt)).one()

        return WriteResult(id=row[0], created_at=row[1], updated_at=row[2])

    async def _append(self, table: Table, values: dict[str, Any], stamp_column: str) -> WriteResult:
        stmt = insert(table).values(**values).returning(table.c.id, table.c[stamp_column])
        async with self._transaction() as conn:
            row = (await conn.execute(stmt)).one()
        return WriteResult(id=row[0], created_at=row[1])

    async def _select(self, query: QueryBuilder, order_by: Sequence[Any], limit: int) -> list[Row]:
        stmt = query.build(order_by, limit)
        async with self._transaction() as conn:
            result = await conn.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    async def store_context(
        self,
        project_name: str,
        context_type: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        result = await self._upsert(
            project_contexts,
            {"project_name": project_name, "context_type": context_type},
            {"content": content, "metadata": metadata or {}},
        )
        logger.info(
            "context_stored",
            project=project_name,
            context_type=context_type,
            content_length=len(content),
            id=result.id,
        )
        return result

    async def get_context(
        self, project_name: str, context_type: str | None = None, *, limit: int = 100
    ) -> list[Row]:
        t = project_contexts
        query = QueryBuilder(t, project_name).where_equal("context_type", context_type)
        return await self._select(query, [t.c.updated_at.desc()], limit)

    # ------------------------------------------------------------------
    # Conversation history (append-only)
    # ------------------------------------------------------------------

    async def store_conversation(
        self,
        project_name: str,
        conversation_id: str,
        message_type: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        result = await self._append(
            conversation_history,
            {
                "project_name": project_name,
                "conversation_id": conversation_id,
                "message_type": message_type,
                "content": content,
                "metadata": metadata or {},
            },
            "timestamp",
        )
        logger.info(
            "conversation_stored",
            project=project_name,
            conversation_id=conversation_id,
            message_type=message_type,
            content_length=len(content),
        )
        return result

    async def get_conversation_history(
        self,
        project_name: str,
        conversation_id: str | None = None,
        message_type: str | None = None,
        *,
        limit: int = 50,
    ) -> list[Row]:
        t = conversation_history
        query = (
            QueryBuilder(t, project_name)
            .where_equal("conversation_id", conversation_id)
            .where_equal("message_type", message_type)
        )
        return await self._select(query, [t.c.timestamp.desc(), t.c.id.desc()], limit)

    # ------------------------------------------------------------------
    # File history (append-only, versioned)
    # ------------------------------------------------------------------

    async def store_file_history(
        self,
        project_name: str,
        file_path: str,
        content: str,
        author: str,
        commit_hash: str | None = None,
        change_description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        """Append the next version of a file.

        The per-file counter row is bumped with an atomic upsert in the same
        transaction as the insert; its row lock serialises concurrent writers
        of the same file, so versions are 1, 2, 3, ... with no gaps or repeats.
        """
        checksum, file_size = content_checksum(content)

        counters = file_version_counters
        bump = pg_insert(counters).values(
            project_name=project_name, file_path=file_path, last_version=1
        )
        bump = bump.on_conflict_do_update(
            index_elements=["project_name", "file_path"],
            set_={"last_version": counters.c.last_version + 1, "updated_at": func.now()},
        ).returning(counters.c.last_version)

        async with self._transaction() as conn:
            version = (await conn.execute(bump)).scalar_one()
            row = (
                await conn.execute(
                    insert(file_history)
                    .values(
                        project_name=project_name,
                        file_path=file_path,
                        content=content,
                        checksum=checksum,
                        file_size=file_size,
                        author=author,
                        commit_hash=commit_hash,
                        change_description=change_description,
                        version_number=version,
                        metadata=metadata or {},
                    )
                    .returning(file_history.c.id, file_history.c.created_at)
                )
            ).one()

        logger.info(
            "file_history_stored",
            project=project_name,
            file_path=file_path,
            version=version,
            file_size=file_size,
        )
        return WriteResult(id=row[0], created_at=row[1], version_number=version)

    async def get_file_history(
        self,
        project_name: str,
        file_path: str | None = None,
        author: str | None = None,
        *,
        limit: int = 50,
    ) -> list[Row]:
        t = file_history
        query = (
            QueryBuilder(t, project_name)
            .where_equal("file_path", file_path)
            .where_equal("author", author)
        )
        return await self._select(query, [t.c.created_at.desc(), t.c.version_number.desc()], limit)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def store_project_user(
        self,
        project_name: str,
        username: str,
        email: str,
        role: str = "developer",
        permissions: dict[str, Any] | None = None,
        is_active: bool = True,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        return await self._upsert(
            project_users,
            {"project_name": project_name, "username": username},
            {
                "email": email,
                "role": role,
                "permissions": permissions or {},
                "is_active": is_active,
                "last_active": func.now(),
                "metadata": metadata or {},
            },
        )

    async def get_project_users(
        self,
        project_name: str,
        role: str | None = None,
        *,
        active_only: bool = True,
        limit: int = 100,
    ) -> list[Row]:
        t = project_users
        query = (
            QueryBuilder(t, project_name)
            .where_equal("role", role)
            .where_flag("is_active", True, enabled=active_only)
        )
        return await self._select(query, [t.c.role, t.c.username], limit)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def store_project_task(
        self,
        project_name: str,
        task_id: str,
        title: str,
        description: str | None = None,
        status: str = "open",
        priority: str = "medium",
        task_type: str = "feature",
        assignee: str | None = None,
        reporter: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        result = await self._upsert(
            project_tasks,
            {"project_name": project_name, "task_id": task_id},
            {
                "title": title,
                "description": description,
                "status": status,
                "priority": priority,
                "task_type": task_type,
                "assignee": assignee,
                "reporter": reporter,
                "metadata": metadata or {},
            },
        )
        logger.info("task_stored", project=project_name, task_id=task_id, status=status)
        return result

    async def get_project_tasks(
        self,
        project_name: str,
        status: str | None = None,
        assignee: str | None = None,
        priority: str | None = None,
        task_type: str | None = None,
        *,
        limit: int = 100,
    ) -> list[Row]:
        t = project_tasks
        query = (
            QueryBuilder(t, project_name)
            .where_equal("status", status)
            .where_equal("assignee", assignee)
            .where_equal("priority", priority)
            .where_equal("task_type", task_type)
        )
        rank = case(PRIORITY_RANK, value=t.c.priority, else_=len(PRIORITY_RANK))
        return await self._select(query, [rank, t.c.created_at.desc()], limit)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    async def store_project_dependency(
        self,
        project_name: str,
        package_name: str,
        version: str,
        package_manager: str,
        dependency_type: str = "production",
        license: str | None = None,
        description: str | None = None,
        is_active: bool = True,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        # Keyed on (project, package) only: the same package under another
        # manager or dependency type overwrites this row.
        return await self._upsert(
            project_dependencies,
            {"project_name": project_name, "package_name": package_name},
            {
                "version": version,
                "package_manager": package_manager,
                "dependency_type": dependency_type,
                "license": license,
                "description": description,
                "is_active": is_active,
                "metadata": metadata or {},
            },
            created_column="installed_at",
        )

    async def get_project_dependencies(
        self,
        project_name: str,
        package_manager: str | None = None,
        dependency_type: str | None = None,
        *,
        active_only: bool = True,
        limit: int = 100,
    ) -> list[Row]:
        t = project_dependencies
        query = (
            QueryBuilder(t, project_name)
            .where_equal("package_manager", package_manager)
            .where_equal("dependency_type", dependency_type)
            .where_flag("is_active", True, enabled=active_only)
        )
        return await self._select(query, [t.c.package_name], limit)

    # ------------------------------------------------------------------
    # Environment configuration
    # ------------------------------------------------------------------

    async def store_environment_config(
        self,
        project_name: str,
        environment_name: str,
        config_key: str,
        config_value: str,
        is_sensitive: bool = False,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        result = await self._upsert(
            project_environments,
            {
                "project_name": project_name,
                "environment_name": environment_name,
                "config_key": config_key,
            },
            {
                "config_value": config_value,
                "is_sensitive": is_sensitive,
                "description": description,
                "metadata": metadata or {},
            },
        )
        # Never log the value itself.
        logger.info(
            "environment_config_stored",
            project=project_name,
            environment=environment_name,
            key=config_key,
            sensitive=is_sensitive,
        )
        return result

    async def get_environment_configs(
        self,
        project_name: str,
        environment_name: str | None = None,
        *,
        include_sensitive: bool = False,
        limit: int = 100,
    ) -> list[Row]:
        t = project_environments
        query = (
            QueryBuilder(t, project_name)
            .where_equal("environment_name", environment_name)
            .where_flag("is_sensitive", False, enabled=not include_sensitive)
        )
        return await self._select(query, [t.c.environment_name, t.c.config_key], limit)

    # ------------------------------------------------------------------
    # Activity log (append-only)
    # ------------------------------------------------------------------

    async def log_activity(
        self,
        project_name: str,
        activity_type: str,
        actor: str,
        target: str,
        action: str,
        details: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        return await self._append(
            project_activity_logs,
            {
                "project_name": project_name,
                "activity_type": activity_type,
                "actor": actor,
                "target": target,
                "action": action,
                "details": details,
                "ip_address": ip_address,
                "user_agent": user_agent,
                "metadata": metadata or {},
            },
            "timestamp",
        )

    async def get_activity_logs(
        self,
        project_name: str,
        activity_type: str | None = None,
        actor: str | None = None,
        target: str | None = None,
        *,
        limit: int = 100,
    ) -> list[Row]:
        t = project_activity_logs
        query = (
            QueryBuilder(t, project_name)
            .where_equal("activity_type", activity_type)
            .where_equal("actor", actor)
            .where_equal("target", target)
        )
        return await self._select(query, [t.c.timestamp.desc(), t.c.id.desc()], limit)

    # ------------------------------------------------------------------
    # Builds
    # ------------------------------------------------------------------

    async def store_build(
        self,
        project_name: str,
        build_number: str,
        build_type: str,
        status: str,
        branch_name: str | None = None,
        commit_hash: str | None = None,
        triggered_by: str | None = None,
        test_results: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        result = await self._upsert(
            project_builds,
            {"project_name": project_name, "build_number": build_number},
            {
                "build_type": build_type,
                "status": status,
                "branch_name": branch_name,
                "commit_hash": commit_hash,
                "triggered_by": triggered_by,
                "test_results": test_results or {},
                "metadata": metadata or {},
            },
            created_column="start_time",
        )
        logger.info("build_stored", project=project_name, build_number=build_number, status=status)
        return result

    async def update_build_status(
        self,
        project_name: str,
        build_number: str,
        status: str,
        end_time: datetime | None = None,
        duration_seconds: int | None = None,
        logs: str | None = None,
    ) -> WriteResult:
        """Transition a build's status without touching its other columns.

        end_time defaults to the server clock; duration_seconds and logs are
        only overwritten when supplied. Raises RecordNotFoundError when the
        build does not exist.
        """
        t = project_builds
        values: dict[str, Any] = {
            "status": status,
            "end_time": end_time if end_time is not None else func.now(),
            "updated_at": func.now(),
        }
        if duration_seconds is not None:
            values["duration_seconds"] = duration_seconds
        if logs is not None:
            values["logs"] = logs

        stmt = (
            update(t)
            .where(t.c.project_name == project_name, t.c.build_number == build_number)
            .values(**values)
            .returning(t.c.id, t.c.start_time, t.c.updated_at)
        )
        async with self._transaction() as conn:
            row = (await conn.execute(stmt)).one_or_none()

        if row is None:
            raise RecordNotFoundError(
                f'Build "{build_number}" not found in project "{project_name}"'
            )
        logger.info(
            "build_status_updated", project=project_name, build_number=build_number, status=status
        )
        return WriteResult(id=row[0], created_at=row[1], updated_at=row[2])

    async def get_build_history(
        self,
        project_name: str,
        status: str | None = None,
        branch_name: str | None = None,
        build_type: str | None = None,
        *,
        limit: int = 50,
    ) -> list[Row]:
        t = project_builds
        query = (
            QueryBuilder(t, project_name)
            .where_equal("status", status)
            .where_equal("branch_name", branch_name)
            .where_equal("build_type", build_type)
        )
        return await self._select(query, [t.c.start_time.desc(), t.c.id.desc()], limit)

    # ------------------------------------------------------------------
    # Documentation
    # ------------------------------------------------------------------

    async def store_documentation(
        self,
        project_name: str,
        doc_type: str,
        title: str,
        content: str,
        format: str = "markdown",
        version: str | None = None,
        author: str | None = None,
        tags: list[str] | None = None,
        is_published: bool = False,
        external_url: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        return await self._upsert(
            project_documentation,
            {"project_name": project_name, "doc_type": doc_type, "title": title},
            {
                "content": content,
                "format": format,
                "version": version,
                "author": author,
                "tags": list(tags or []),
                "is_published": is_published,
                "external_url": external_url,
                "metadata": metadata or {},
            },
        )

    async def get_documentation(
        self,
        project_name: str,
        doc_type: str | None = None,
        author: str | None = None,
        *,
        published_only: bool = False,
        limit: int = 100,
    ) -> list[Row]:
        t = project_documentation
        query = (
            QueryBuilder(t, project_name)
            .where_equal("doc_type", doc_type)
            .where_equal("author", author)
            .where_flag("is_published", True, enabled=published_only)
        )
        return await self._select(query, [t.c.doc_type, t.c.title], limit)

    # ------------------------------------------------------------------
    # Components and relationships
    # ------------------------------------------------------------------

    async def store_project_component(
        self,
        project_name: str,
        component_name: str,
        component_type: str,
        file_path: str | None = None,
        description: str | None = None,
        version: str | None = None,
        is_active: bool = True,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        return await self._upsert(
            project_components,
            {"project_name": project_name, "component_name": component_name},
            {
                "component_type": component_type,
                "file_path": file_path,
                "description": description,
                "version": version,
                "is_active": is_active,
                "metadata": metadata or {},
            },
        )

    async def get_project_components(
        self,
        project_name: str,
        component_type: str | None = None,
        *,
        active_only: bool = True,
        limit: int = 100,
    ) -> list[Row]:
        t = project_components
        query = (
            QueryBuilder(t, project_name)
            .where_equal("component_type", component_type)
            .where_flag("is_active", True, enabled=active_only)
        )
        return await self._select(query, [t.c.component_type, t.c.component_name], limit)

    async def store_component_relationship(
        self,
        project_name: str,
        source_component: str,
        target_component: str,
        relationship_type: str,
        strength: int = 1,
        description: str | None = None,
        is_directed: bool = True,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        return await self._upsert(
            component_relationships,
            {
                "project_name": project_name,
                "source_component": source_component,
                "target_component": target_component,
                "relationship_type": relationship_type,
            },
            {
                "strength": strength,
                "description": description,
                "is_directed": is_directed,
                "metadata": metadata or {},
            },
        )

    async def get_component_relationships(
        self,
        project_name: str,
        source_component: str | None = None,
        target_component: str | None = None,
        relationship_type: str | None = None,
        *,
        limit: int = 100,
    ) -> list[Row]:
        t = component_relationships
        query = (
            QueryBuilder(t, project_name)
            .where_equal("source_component", source_component)
            .where_equal("target_component", target_component)
            .where_equal("relationship_type", relationship_type)
        )
        order = [t.c.relationship_type, t.c.source_component, t.c.target_component]
        return await self._select(query, order, limit)

    # ------------------------------------------------------------------
    # File metadata
    # ------------------------------------------------------------------

    async def store_file_metadata(
        self,
        project_name: str,
        file_path: str,
        file_name: str,
        file_extension: str | None = None,
        file_size: int | None = None,
        file_type: str | None = None,
        language: str | None = None,
        line_count: int | None = None,
        last_author: str | None = None,
        checksum: str | None = None,
        is_binary: bool = False,
        is_generated: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> WriteResult:
        return await self._upsert(
            file_metadata,
            {"project_name": project_name, "file_path": file_path},
            {
                "file_name": file_name,
                "file_extension": file_extension,
                "file_size": file_size,
                "file_type": file_type,
                "language": language,
                "line_count": line_count,
                "last_author": last_author,
                "checksum": checksum,
                "is_binary": is_binary,
                "is_generated": is_generated,
                "last_modified": func.now(),
                "metadata": metadata or {},
            },
        )

    async def get_file_metadata(
        self,
        project_name: str,
        file_type: str | None = None,
        language: str | None = None,
        *,
        include_binary: bool = False,
        limit: int = 100,
    ) -> list[Row]:
        t = file_metadata
        query = (
            QueryBuilder(t, project_name)
            .where_equal("file_type", file_type)
            .where_equal("language", language)
            .where_flag("is_binary", False, enabled=not include_binary)
        )
        return await self._select(query, [t.c.file_path], limit)
