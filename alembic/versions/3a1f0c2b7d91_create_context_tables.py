"""Create project context tables.

Revision ID: 3a1f0c2b7d91
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from ctxstore.constants import DB_SCHEMA

revision = "3a1f0c2b7d91"
down_revision = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True)


def _project() -> sa.Column:
    return sa.Column("project_name", sa.String(length=255), nullable=False)


def _doc(name: str = "metadata") -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(astext_type=sa.Text()),
        nullable=False,
        server_default=sa.text("'{}'::jsonb"),
    )


def _stamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")
    )


def upgrade() -> None:
    op.create_table(
        "project_contexts",
        _id(),
        _project(),
        sa.Column("context_type", sa.String(length=100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _doc(),
        _stamp("created_at"),
        _stamp("updated_at"),
        sa.UniqueConstraint("project_name", "context_type", name="uq_project_contexts_key"),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "conversation_history",
        _id(),
        _project(),
        sa.Column("conversation_id", sa.String(length=255), nullable=False),
        sa.Column("message_type", sa.String(length=50), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _doc(),
        _stamp("timestamp"),
        schema=DB_SCHEMA,
    )
    op.create_index(
        "idx_conversation_history_lookup",
        "conversation_history",
        ["project_name", "conversation_id"],
        schema=DB_SCHEMA,
    )
    op.create_table(
        "file_history",
        _id(),
        _project(),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("checksum", sa.String(length=64), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("author", sa.String(length=255), nullable=False),
        sa.Column("commit_hash", sa.String(length=64), nullable=True),
        sa.Column("change_description", sa.Text(), nullable=True),
        sa.Column("version_number", sa.Integer(), nullable=False),
        _doc(),
        _stamp("created_at"),
        sa.UniqueConstraint(
            "project_name", "file_path", "version_number", name="uq_file_history_version"
        ),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "file_version_counters",
        _project(),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("last_version", sa.Integer(), nullable=False),
        _stamp("updated_at"),
        sa.UniqueConstraint("project_name", "file_path", name="uq_file_version_counters_key"),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "project_users",
        _id(),
        _project(),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="developer"),
        _doc("permissions"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_active", sa.DateTime(timezone=True), nullable=True),
        _doc(),
        _stamp("created_at"),
        _stamp("updated_at"),
        sa.UniqueConstraint("project_name", "username", name="uq_project_users_key"),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "project_tasks",
        _id(),
        _project(),
        sa.Column("task_id", sa.String(length=100), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="open"),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="medium"),
        sa.Column("task_type", sa.String(length=50), nullable=False, server_default="feature"),
        sa.Column("assignee", sa.String(length=255), nullable=True),
        sa.Column("reporter", sa.String(length=255), nullable=True),
        _doc(),
        _stamp("created_at"),
        _stamp("updated_at"),
        sa.UniqueConstraint("project_name", "task_id", name="uq_project_tasks_key"),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "project_dependencies",
        _id(),
        _project(),
        sa.Column("package_name", sa.String(length=255), nullable=False),
        sa.Column("version", sa.String(length=100), nullable=False),
        sa.Column("package_manager", sa.String(length=50), nullable=False),
        sa.Column(
            "dependency_type", sa.String(length=50), nullable=False, server_default="production"
        ),
        sa.Column("license", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _doc(),
        _stamp("installed_at"),
        _stamp("updated_at"),
        sa.UniqueConstraint("project_name", "package_name", name="uq_project_dependencies_key"),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "project_environments",
        _id(),
        _project(),
        sa.Column("environment_name", sa.String(length=100), nullable=False),
        sa.Column("config_key", sa.String(length=255), nullable=False),
        sa.Column("config_value", sa.Text(), nullable=False),
        sa.Column("is_sensitive", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("description", sa.Text(), nullable=True),
        _doc(),
        _stamp("created_at"),
        _stamp("updated_at"),
        sa.UniqueConstraint(
            "project_name", "environment_name", "config_key", name="uq_project_environments_key"
        ),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "project_activity_logs",
        _id(),
        _project(),
        sa.Column("activity_type", sa.String(length=50), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("target", sa.Text(), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        _doc(),
        _stamp("timestamp"),
        schema=DB_SCHEMA,
    )
    op.create_index(
        "idx_project_activity_logs_recent",
        "project_activity_logs",
        ["project_name", "timestamp"],
        schema=DB_SCHEMA,
    )
    op.create_table(
        "project_builds",
        _id(),
        _project(),
        sa.Column("build_number", sa.String(length=100), nullable=False),
        sa.Column("build_type", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("branch_name", sa.String(length=255), nullable=True),
        sa.Column("commit_hash", sa.String(length=64), nullable=True),
        sa.Column("triggered_by", sa.String(length=255), nullable=True),
        _doc("test_results"),
        sa.Column("logs", sa.Text(), nullable=True),
        _stamp("start_time"),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        _doc(),
        _stamp("updated_at"),
        sa.UniqueConstraint("project_name", "build_number", name="uq_project_builds_key"),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "project_documentation",
        _id(),
        _project(),
        sa.Column("doc_type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("format", sa.String(length=20), nullable=False, server_default="markdown"),
        sa.Column("version", sa.String(length=50), nullable=True),
        sa.Column("author", sa.String(length=255), nullable=True),
        sa.Column(
            "tags",
            postgresql.ARRAY(sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::text[]"),
        ),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("external_url", sa.Text(), nullable=True),
        _doc(),
        _stamp("created_at"),
        _stamp("updated_at"),
        sa.UniqueConstraint(
            "project_name", "doc_type", "title", name="uq_project_documentation_key"
        ),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "project_components",
        _id(),
        _project(),
        sa.Column("component_name", sa.String(length=255), nullable=False),
        sa.Column("component_type", sa.String(length=50), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("version", sa.String(length=50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _doc(),
        _stamp("created_at"),
        _stamp("updated_at"),
        sa.UniqueConstraint("project_name", "component_name", name="uq_project_components_key"),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "component_relationships",
        _id(),
        _project(),
        sa.Column("source_component", sa.String(length=255), nullable=False),
        sa.Column("target_component", sa.String(length=255), nullable=False),
        sa.Column("relationship_type", sa.String(length=50), nullable=False),
        sa.Column("strength", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_directed", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _doc(),
        _stamp("created_at"),
        _stamp("updated_at"),
        sa.UniqueConstraint(
            "project_name",
            "source_component",
            "target_component",
            "relationship_type",
            name="uq_component_relationships_key",
        ),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "file_metadata",
        _id(),
        _project(),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_extension", sa.String(length=20), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("file_type", sa.String(length=50), nullable=True),
        sa.Column("language", sa.String(length=50), nullable=True),
        sa.Column("line_count", sa.Integer(), nullable=True),
        sa.Column("last_author", sa.String(length=255), nullable=True),
        sa.Column("checksum", sa.String(length=64), nullable=True),
        sa.Column("is_binary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_generated", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=True),
        _doc(),
        _stamp("created_at"),
        _stamp("updated_at"),
        sa.UniqueConstraint("project_name", "file_path", name="uq_file_metadata_key"),
        schema=DB_SCHEMA,
    )


def downgrade() -> None:
    op.drop_index(
        "idx_project_activity_logs_recent", table_name="project_activity_logs", schema=DB_SCHEMA
    )
    op.drop_index(
        "idx_conversation_history_lookup", table_name="conversation_history", schema=DB_SCHEMA
    )
    for table in (
        "file_metadata",
        "component_relationships",
        "project_components",
        "project_documentation",
        "project_builds",
        "project_activity_logs",
        "project_environments",
        "project_dependencies",
        "project_tasks",
        "project_users",
        "file_version_counters",
        "file_history",
        "conversation_history",
        "project_contexts",
    ):
        op.drop_table(table, schema=DB_SCHEMA)
