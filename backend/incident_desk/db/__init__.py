"""Durable key-value storage with SQLAlchemy, Redis and in-memory backends."""
from incident_desk.db.backends import MemoryBackend, PersistenceBackend, RedisBackend, SQLBackend, get_backend
from incident_desk.db.factory import close_database, get_db_engine, init_database

__all__ = [
    "MemoryBackend",
    "PersistenceBackend",
    "RedisBackend",
    "SQLBackend",
    "get_backend",
    "close_database",
    "get_db_engine",
    "init_database",
]
