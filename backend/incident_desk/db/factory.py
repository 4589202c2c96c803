"""Async engine and session factory for the SQL storage backend.

Only SQLite through aiosqlite ships with the package. DATABASE_URL may
point anywhere SQLAlchemy has an async driver installed for; plain
``sqlite://`` URLs are switched to aiosqlite.
"""
from __future__ import annotations

import logging
import os

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from incident_desk.config import settings

logger = logging.getLogger(__name__)

BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

_engine: AsyncEngine | None = None
_async_session_maker: sessionmaker[AsyncSession] | None = None


def sqlite_path_url(db_path: str) -> str:
    """aiosqlite URL for a file path; relative paths resolve against backend/."""
    if not os.path.isabs(db_path):
        db_path = os.path.join(BACKEND_DIR, db_path)
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    return f"sqlite+aiosqlite:///{db_path}"


def async_database_url(database_url: str) -> str:
    """Normalize DATABASE_URL for the async engine."""
    url = make_url(database_url)
    if url.drivername == "sqlite":
        url = url.set(drivername="sqlite+aiosqlite")
    return url.render_as_string(hide_password=False)


def get_db_engine() -> AsyncEngine:
    """Get or create the database engine."""
    global _engine
    if _engine is not None:
        return _engine

    if settings.database_url:
        url = async_database_url(settings.database_url)
        logger.info("Using DATABASE_URL (%s)", make_url(url).drivername)
    else:
        url = sqlite_path_url(settings.store_db_path)
        logger.info("Using SQLite: %s", url)

    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    _engine = create_async_engine(url, echo=False, pool_pre_ping=True, connect_args=connect_args)
    return _engine


def get_session_maker() -> sessionmaker[AsyncSession]:
    """Get or create the session maker."""
    global _async_session_maker
    if _async_session_maker is not None:
        return _async_session_maker

    _async_session_maker = sessionmaker(
        get_db_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _async_session_maker


async def init_database(engine: AsyncEngine | None = None) -> None:
    """Create the kv_store table if needed."""
    from incident_desk.db.models import Base

    engine = engine or get_db_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def close_database() -> None:
    """Dispose the engine and forget both singletons."""
    global _engine, _async_session_maker
    if _engine:
        await _engine.dispose()
    _engine = None
    _async_session_maker = None
