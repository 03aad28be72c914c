"""Alembic environment for the spread_betting schema.

The database URL comes from the service config (``-x config=path``,
then ``SPREAD_DATABASE_URL``), falling back to ``sqlalchemy.url`` in
alembic.ini when neither is set.
"""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool, text

from spread_core.config.loader import load_config
from spread_core.db.base import Base
from spread_core.db.engine import ensure_psycopg_driver
from spread_core.db.tables.positions import SCHEMA

# Registers every table on Base.metadata
import spread_core.db.tables  # noqa: F401

alembic_cfg = context.config

if alembic_cfg.config_file_name is not None:
    fileConfig(alembic_cfg.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    app_cfg = load_config(context.get_x_argument(as_dictionary=True).get("config"))
    url = app_cfg.database.url
    if url == type(app_cfg.database)().url:
        url = alembic_cfg.get_main_option("sqlalchemy.url") or url
    return ensure_psycopg_driver(url)


def _ours(obj, name, type_, reflected, compare_to) -> bool:
    return type_ != "table" or obj.schema == SCHEMA


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_schemas=True,
        include_object=_ours,
        version_table_schema=SCHEMA,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL without connecting."""
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Connect and migrate; the schema must exist before the version table goes in it."""
    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}"))
        connection.commit()
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
