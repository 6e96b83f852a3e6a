"""Alembic environment for the doclink schema.

The database URL comes from doclink settings (``DOCLINK_DATABASE__URL``)
when they load, otherwise from ``sqlalchemy.url`` in alembic.ini.
"""

import logging
from logging.config import fileConfig

from alembic import context
from pydantic import ValidationError
from sqlalchemy import create_engine, pool

from doclink.db import get_database_url
from doclink.db.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def get_url() -> str:
    from doclink.core.config import Settings

    try:
        return get_database_url(Settings())
    except ValidationError:
        logger.warning("doclink settings did not load; using sqlalchemy.url from alembic.ini")
    url = config.get_main_option("sqlalchemy.url", "")
    return url.replace("postgresql://", "postgresql+psycopg://", 1)


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
        )

        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
