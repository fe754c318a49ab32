"""Alembic environment for the omnisession base tables.

Only tables are managed here. The partial unique index on sessions is owned
by ensure_session_index, which evolves it online at startup.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from omnisession.config import get_settings
from omnisession.db.pool import dsn_from_env

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Hand-written revisions; nothing to autogenerate from
target_metadata = None


def database_url() -> str:
    """[storage.postgres].dsn, then the environment, as an asyncpg SQLAlchemy URL."""
    url = get_settings().storage.postgres.dsn or dsn_from_env()
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url.removeprefix("postgresql://")
    return url


def run_offline() -> None:
    context.configure(
        url=database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = database_url()
    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
