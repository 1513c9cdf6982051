"""
Greenlight — Alembic Environment
=================================

What:  Applies the movies schema migrations (``alembic upgrade head``).
How:   Online runs open a single NullPool async engine on DATABASE_URL and
       hand its connection to Alembic through ``run_sync``. Offline runs
       (``--sql``) render the same migrations as a PostgreSQL script.

The URL in alembic.ini is a placeholder; ``greenlight.config.settings`` is
the only source of DATABASE_URL.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from greenlight.config import settings
from greenlight.database import Base
from greenlight.models.movie import Movie  # noqa: F401  (registers the table)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _configure(**kwargs) -> None:
    # Column type and server default drift both show up in --autogenerate.
    context.configure(
        target_metadata=Base.metadata,
        compare_type=True,
        compare_server_default=True,
        transaction_per_migration=True,
        **kwargs,
    )


def _apply(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def migrate_database() -> None:
    engine = create_async_engine(settings.database_url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


def render_sql() -> None:
    """Write the upgrade script to stdout without touching a database."""
    _configure(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    render_sql()
else:
    asyncio.run(migrate_database())
