"""Alembic environment configuration."""
import os
from logging.config import fileConfig
from pathlib import Path
import sys

from sqlalchemy import create_engine, pool

from alembic import context

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from incident_desk.config import settings
from incident_desk.db.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """Database URL for Alembic. ALEMBIC_DATABASE_URL wins over settings when set."""
    database_url = os.environ.get("ALEMBIC_DATABASE_URL") or settings.database_url

    if database_url:
        # Alembic runs on the sync sqlite driver
        if database_url.startswith("sqlite+aiosqlite://"):
            database_url = database_url.replace("sqlite+aiosqlite://", "sqlite://", 1)
        return database_url

    db_path = settings.store_db_path
    if not os.path.isabs(db_path):
        db_path = os.path.join(backend_dir, db_path)
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    return f"sqlite:///{db_path}"


def run_migrations_offline() -> None:
    """Emit migration SQL without connecting."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
