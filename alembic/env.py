from logging.config import fileConfig

from sqlalchemy import create_engine, pool, text

from alembic import context
from ctxstore.config.settings import DatabaseSettings
from ctxstore.constants import DB_SCHEMA
from ctxstore.storage.models import metadata

# Alembic Config object
config = context.config

# Python logging from ini file
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# DATABASE_* vars (and .env) resolved through the same settings class as the server;
# migrations run synchronously, so swap the asyncpg driver for psycopg.
_db = DatabaseSettings()
DATABASE_URL = _db.url.replace("postgresql+asyncpg://", "postgresql+psycopg://", 1)

target_metadata = metadata


def include_name(name, type_, parent_names):
    """Only include objects from the ctxstore schema."""
    if type_ == "schema":
        return name == DB_SCHEMA
    return True


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        version_table_schema=DB_SCHEMA,
        include_schemas=True,
        include_name=include_name,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = create_engine(DATABASE_URL, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {DB_SCHEMA}"))
        connection.commit()

        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            version_table_schema=DB_SCHEMA,
            include_schemas=True,
            include_name=include_name,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
