"""Alembic environment for the contact discovery schema.

Migrations run on a synchronous driver; the URL comes from the application
settings so ``DATABASE_URL`` drives both the service and ``alembic upgrade``.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url

from contactsync.persistence import models  # noqa: F401  registers tables on Base.metadata
from contactsync.persistence.database import Base
from contactsync.settings import get_sync_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

database_url = get_sync_database_url()
# ConfigParser interpolation treats "%" specially (percent-encoded passwords)
config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))

target_metadata = Base.metadata

# SQLite cannot ALTER constraints in place
render_as_batch = make_url(database_url).get_backend_name() == "sqlite"


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=render_as_batch,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=render_as_batch,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
