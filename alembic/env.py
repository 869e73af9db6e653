from sqlalchemy import create_engine, pool

from alembic import context
from src.task_orchestrator.config import db_settings, get_settings
from src.task_orchestrator.db import models  # noqa: F401
from src.task_orchestrator.db.database import Base

config = context.config

target_metadata = Base.metadata


def _database_url() -> str:
    settings = get_settings()
    if settings.use_sqlite:
        return f"sqlite:///{settings.sqlite_file_path}"
    return db_settings.database_url


def run_migrations_online() -> None:
    connectable = create_engine(
        _database_url(),
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    pass  # Offline mode not implemented
else:
    run_migrations_online()
