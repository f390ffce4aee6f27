"""
Alembic environment for the scheduler tables (async, SQLAlchemy ≥2.0).

The connection string comes from the same DATABASE_URL / DATABASE_PUBLIC_URL
lookup the app uses (see ``db.db._build_url``), falling back to
``sqlalchemy.url`` in alembic.ini. SQLite runs in batch mode so column
changes work there too.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from db.db import Base, UTCDateTime, _build_url

# ---------------------------------------------------------------------
# 1. Logging / metadata
# ---------------------------------------------------------------------
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# ---------------------------------------------------------------------
# 2. Helpers
# ---------------------------------------------------------------------
def _database_url() -> str:
    try:
        return _build_url()
    except RuntimeError:
        url = config.get_main_option("sqlalchemy.url")
        if not url:
            raise
        return url


def _render_item(type_, obj, autogen_context):
    # migrations must not import app code for column types
    if type_ == "type" and isinstance(obj, UTCDateTime):
        autogen_context.imports.add("import sqlalchemy as sa")
        return "sa.DateTime(timezone=True)"
    return False


def _configure(batch: bool, **kw) -> None:
    context.configure(
        target_metadata=target_metadata,
        render_item=_render_item,
        compare_type=True,
        render_as_batch=batch,
        **kw,
    )

# ---------------------------------------------------------------------
# 3. Offline: emit SQL only
# ---------------------------------------------------------------------
def run_migrations_offline() -> None:
    url = _database_url()
    _configure(
        url.startswith("sqlite"),
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()

# ---------------------------------------------------------------------
# 4. Online: run against the database
# ---------------------------------------------------------------------
def _run_sync(connection) -> None:
    _configure(connection.dialect.name == "sqlite", connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_database_url(), poolclass=pool.NullPool)
    async with engine.connect() as conn:
        await conn.run_sync(_run_sync)
    await engine.dispose()

# ---------------------------------------------------------------------
# 5. Entrypoint
# ---------------------------------------------------------------------
if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
