"""Alembic environment — migrations for the events/swap_requests/users schema.

Invariants:
    - Target URL resolved like the app: -x database_url=... wins, then
      Settings (DATABASE_URL env or .env, postgresql:// coerced to asyncpg)
    - swapsync.models imported before metadata is read (autogenerate sees
      every table)
    - SQLite targets run in batch mode (ALTER TABLE is emulated)
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

from swapsync.config import get_settings
from swapsync.db.base import Base
import swapsync.models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def migration_url() -> str:
    return context.get_x_argument(as_dictionary=True).get(
        "database_url", get_settings().database_url,
    )


def _configure(url: str, **kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=url.startswith("sqlite"),
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    url = migration_url()
    _configure(
        url,
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection, url: str) -> None:
    _configure(url, connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    url = migration_url()
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync, url)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
