"""SQLAlchemy Core tables for every project-knowledge entity.

Upsert entities carry a UniqueConstraint on their natural key; that
constraint is the sole arbiter when writers race on the same key.
Append-only entities have no natural key and are never updated.

Core tables (not declarative classes) because every entity has a
column literally named ``metadata``.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

from ctxstore.constants import DB_SCHEMA

metadata = MetaData(schema=DB_SCHEMA)


def _id() -> Column:
    return Column("id", Integer, primary_key=True, autoincrement=True)


def _project() -> Column:
    return Column("project_name", String(255), nullable=False)


def _doc(name: str = "metadata") -> Column:
    return Column(name, JSONB, nullable=False, server_default=text("'{}'::jsonb"))


def _stamp(name: str) -> Column:
    return Column(name, DateTime(timezone=True), nullable=False, server_default=func.now())


project_contexts = Table(
    "project_contexts",
    metadata,
    _id(),
    _project(),
    Column("context_type", String(100), nullable=False),
    Column("content", Text, nullable=False),
    _doc(),
    _stamp("created_at"),
    _stamp("updated_at"),
    UniqueConstraint("project_name", "context_type", name="uq_project_contexts_key"),
)

# Append-only: turns grouped by conversation_id, ordered by timestamp.
conversation_history = Table(
    "conversation_history",
    metadata,
    _id(),
    _project(),
    Column("conversation_id", String(255), nullable=False),
    Column("message_type", String(50), nullable=False),
    Column("content", Text, nullable=False),
    _doc(),
    _stamp("timestamp"),
    Index("idx_conversation_history_lookup", "project_name", "conversation_id"),
)

# Append-only: one row per stored version of a file.
file_history = Table(
    "file_history",
    metadata,
    _id(),
    _project(),
    Column("file_path", Text, nullable=False),
    Column("content", Text, nullable=False),
    Column("checksum", String(64), nullable=False),
    Column("file_size", Integer, nullable=False),
    Column("author", String(255), nullable=False),
    Column("commit_hash", String(64), nullable=True),
    Column("change_description", Text, nullable=True),
    Column("version_number", Integer, nullable=False),
    _doc(),
    _stamp("created_at"),
    UniqueConstraint(
        "project_name", "file_path", "version_number", name="uq_file_history_version"
    ),
)

# Per-file version counter; bumped atomically before each file_history insert.
file_version_counters = Table(
    "file_version_counters",
    metadata,
    _project(),
    Column("file_path", Text, nullable=False),
    Column("last_version", Integer, nullable=False),
    _stamp("updated_at"),
    UniqueConstraint("project_name", "file_path", name="uq_file_version_counters_key"),
)

project_users = Table(
    "project_users",
    metadata,
    _id(),
    _project(),
    Column("username", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("role", String(50), nullable=False, server_default="developer"),
    _doc("permissions"),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("last_active", DateTime(timezone=True), nullable=True),
    _doc(),
    _stamp("created_at"),
    _stamp("updated_at"),
    UniqueConstraint("project_name", "username", name="uq_project_users_key"),
)

project_tasks = Table(
    "project_tasks",
    metadata,
    _id(),
    _project(),
    Column("task_id", String(100), nullable=False),
    Column("title", Text, nullable=False),
    Column("description", Text, nullable=True),
    Column("status", String(50), nullable=False, server_default="open"),
    Column("priority", String(20), nullable=False, server_default="medium"),
    Column("task_type", String(50), nullable=False, server_default="feature"),
    Column("assignee", String(255), nullable=True),
    Column("reporter", String(255), nullable=True),
    _doc(),
    _stamp("created_at"),
    _stamp("updated_at"),
    UniqueConstraint("project_name", "task_id", name="uq_project_tasks_key"),
)

project_dependencies = Table(
    "project_dependencies",
    metadata,
    _id(),
    _project(),
    Column("package_name", String(255), nullable=False),
    Column("version", String(100), nullable=False),
    Column("package_manager", String(50), nullable=False),
    Column("dependency_type", String(50), nullable=False, server_default="production"),
    Column("license", String(100), nullable=True),
    Column("description", Text, nullable=True),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    _doc(),
    _stamp("installed_at"),
    _stamp("updated_at"),
    UniqueConstraint("project_name", "package_name", name="uq_project_dependencies_key"),
)

project_environments = Table(
    "project_environments",
    metadata,
    _id(),
    _project(),
    Column("environment_name", String(100), nullable=False),
    Column("config_key", String(255), nullable=False),
    Column("config_value", Text, nullable=False),
    Column("is_sensitive", Boolean, nullable=False, server_default=text("false")),
    Column("description", Text, nullable=True),
    _doc(),
    _stamp("created_at"),
    _stamp("updated_at"),
    UniqueConstraint(
        "project_name", "environment_name", "config_key", name="uq_project_environments_key"
    ),
)

# Append-only audit trail.
project_activity_logs = Table(
    "project_activity_logs",
    metadata,
    _id(),
    _project(),
    Column("activity_type", String(50), nullable=False),
    Column("actor", String(255), nullable=False),
    Column("target", Text, nullable=False),
    Column("action", String(100), nullable=False),
    Column("details", Text, nullable=True),
    Column("ip_address", String(45), nullable=True),
    Column("user_agent", Text, nullable=True),
    _doc(),
    _stamp("timestamp"),
    Index("idx_project_activity_logs_recent", "project_name", "timestamp"),
)

project_builds = Table(
    "project_builds",
    metadata,
    _id(),
    _project(),
    Column("build_number", String(100), nullable=False),
    Column("build_type", String(50), nullable=False),
    Column("status", String(50), nullable=False),
    Column("branch_name", String(255), nullable=True),
    Column("commit_hash", String(64), nullable=True),
    Column("triggered_by", String(255), nullable=True),
    _doc("test_results"),
    Column("logs", Text, nullable=True),
    _stamp("start_time"),
    Column("end_time", DateTime(timezone=True), nullable=True),
    Column("duration_seconds", Integer, nullable=True),
    _doc(),
    _stamp("updated_at"),
    UniqueConstraint("project_name", "build_number", name="uq_project_builds_key"),
)

project_documentation = Table(
    "project_documentation",
    metadata,
    _id(),
    _project(),
    Column("doc_type", String(50), nullable=False),
    Column("title", String(500), nullable=False),
    Column("content", Text, nullable=False),
    Column("format", String(20), nullable=False, server_default="markdown"),
    Column("version", String(50), nullable=True),
    Column("author", String(255), nullable=True),
    Column("tags", ARRAY(Text), nullable=False, server_default=text("'{}'::text[]")),
    Column("is_published", Boolean, nullable=False, server_default=text("false")),
    Column("external_url", Text, nullable=True),
    _doc(),
    _stamp("created_at"),
    _stamp("updated_at"),
    UniqueConstraint("project_name", "doc_type", "title", name="uq_project_documentation_key"),
)

project_components = Table(
    "project_components",
    metadata,
    _id(),
    _project(),
    Column("component_name", String(255), nullable=False),
    Column("component_type", String(50), nullable=False),
    Column("file_path", Text, nullable=True),
    Column("description", Text, nullable=True),
    Column("version", String(50), nullable=True),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    _doc(),
    _stamp("created_at"),
    _stamp("updated_at"),
    UniqueConstraint("project_name", "component_name", name="uq_project_components_key"),
)

component_relationships = Table(
    "component_relationships",
    metadata,
    _id(),
    _project(),
    Column("source_component", String(255), nullable=False),
    Column("target_component", String(255), nullable=False),
    Column("relationship_type", String(50), nullable=False),
    Column("strength", Integer, nullable=False, server_default=text("1")),
    Column("description", Text, nullable=True),
    Column("is_directed", Boolean, nullable=False, server_default=text("true")),
    _doc(),
    _stamp("created_at"),
    _stamp("updated_at"),
    UniqueConstraint(
        "project_name",
        "source_component",
        "target_component",
        "relationship_type",
        name="uq_component_relationships_key",
    ),
)

file_metadata = Table(
    "file_metadata",
    metadata,
    _id(),
    _project(),
    Column("file_path", Text, nullable=False),
    Column("file_name", String(255), nullable=False),
    Column("file_extension", String(20), nullable=True),
    Column("file_size", Integer, nullable=True),
    Column("file_type", String(50), nullable=True),
    Column("language", String(50), nullable=True),
    Column("line_count", Integer, nullable=True),
    Column("last_author", String(255), nullable=True),
    Column("checksum", String(64), nullable=True),
    Column("is_binary", Boolean, nullable=False, server_default=text("false")),
    Column("is_generated", Boolean, nullable=False, server_default=text("false")),
    Column("last_modified", DateTime(timezone=True), nullable=True),
    _doc(),
    _stamp("created_at"),
    _stamp("updated_at"),
    UniqueConstraint("project_name", "file_path", name="uq_file_metadata_key"),
)

ALL_TABLES: tuple[Table, ...] = tuple(metadata.sorted_tables)
