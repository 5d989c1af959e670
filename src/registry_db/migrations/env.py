"""Alembic runner for the registry tables (forms, responses, directory)."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from registry_db.config import load_database_settings
from registry_db.engine import ISOLATION_LEVEL
from registry_db.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

DB_URL = load_database_settings().sync_url
target_metadata = Base.metadata


def _skip_empty_autogenerate(context_, revision, directives) -> None:
    # autogenerate against an up-to-date schema writes no file
    if getattr(config.cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []


def run_offline() -> None:
    context.configure(
        url=DB_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = create_engine(DB_URL, poolclass=pool.NullPool, isolation_level=ISOLATION_LEVEL)
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            process_revision_directives=_skip_empty_autogenerate,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
