# migrations/env.py
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context

# Models must be imported so they are attached to Base.metadata
import auth.models  # noqa: F401
import courses.models  # noqa: F401
import dashboard.models  # noqa: F401
import notifications.models  # noqa: F401
import progress.models  # noqa: F401
import shop.models  # noqa: F401
import subscription.models  # noqa: F401
import support.models  # noqa: F401
from config import settings
from database import Base

config = context.config
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=settings.DATABASE_URL,
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
