from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from agentflow.core.config import get_settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Alembic needs a sync SQLAlchemy engine; point it at the psycopg3 dialect.
_db_url = get_settings().database_url
for prefix in ("postgresql://", "postgres://"):
    if _db_url.startswith(prefix):
        _db_url = _db_url.replace(prefix, "postgresql+psycopg://", 1)
        break

config.set_main_option("sqlalchemy.url", _db_url)

# Raw SQL migrations only: the conversation store issues its own queries.
target_metadata = None


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
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
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
