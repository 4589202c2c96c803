"""Tests for persistence backends and storage degradation."""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from incident_desk.config import settings
from incident_desk.db.backends import MemoryBackend, PersistenceBackend, SQLBackend
from incident_desk.db.factory import (
    async_database_url,
    close_database,
    get_db_engine,
    get_session_maker,
    init_database,
    sqlite_path_url,
)
from incident_desk.db.models import Base
from incident_desk.db.repository import BlobRepository
from incident_desk.exceptions import StorageUnavailableError
from incident_desk.store import DEFAULT_DB_KEY, RecordStore


@pytest.fixture
async def session_maker():
    """In-memory SQLite session maker with the kv_store table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await engine.dispose()


class BrokenBackend(PersistenceBackend):
    """Fails every read and write."""

    name = "broken"

    async def load(self, key):
        raise StorageUnavailableError(self.name, "disk on fire")

    async def save(self, key, blob):
        raise StorageUnavailableError(self.name, "disk on fire")

    @property
    def durable(self) -> bool:
        return True


@pytest.mark.asyncio
async def test_memory_backend_roundtrip_is_isolated():
    backend = MemoryBackend()
    blob = {"tables": {"Incident": [{"id": "1"}]}}
    await backend.save("k", blob)
    blob["tables"]["Incident"].clear()
    assert (await backend.load("k"))["tables"]["Incident"] == [{"id": "1"}]
    assert await backend.load("missing") is None
    assert backend.durable is False


@pytest.mark.asyncio
async def test_blob_repository_upsert_and_delete(session_maker):
    async with session_maker() as session:
        repo = BlobRepository(session)
        assert await repo.get_blob("k") is None
        await repo.put_blob("k", '{"a": 1}')
        await repo.put_blob("k", '{"a": 2}')
        assert await repo.get_blob("k") == '{"a": 2}'
        assert await repo.delete_blob("k") is True
        assert await repo.delete_blob("k") is False


@pytest.mark.asyncio
async def test_sql_backend_persists_across_stores(session_maker):
    backend = SQLBackend(session_maker)
    store = await RecordStore.open(backend)
    await store.create("Incident", {"title": "Persisted"})

    reopened = await RecordStore.open(SQLBackend(session_maker))
    rows = await reopened.list("Incident")
    assert [r["title"] for r in rows] == ["Persisted"]
    assert backend.durable is True


@pytest.mark.asyncio
async def test_sql_backend_discards_undecodable_blob(session_maker):
    async with session_maker() as session:
        await BlobRepository(session).put_blob(DEFAULT_DB_KEY, "not json")
    assert await SQLBackend(session_maker).load(DEFAULT_DB_KEY) is None


@pytest.mark.asyncio
async def test_store_degrades_to_memory_when_backend_fails():
    store = await RecordStore.open(BrokenBackend())
    assert store.durable is False
    assert store.backend.name == "memory"

    rec = await store.create("Incident", {"title": "still works"})
    assert (await store.list("Incident"))[0]["id"] == rec["id"]


@pytest.mark.asyncio
async def test_store_degrades_on_first_failed_write():
    backend = MemoryBackend()
    store = await RecordStore.open(backend)

    async def fail(key, blob):
        raise StorageUnavailableError("memory", "quota exceeded")

    backend.save = fail
    await store.create("Incident", {"title": "a"})
    assert store.backend is not backend
    assert len(await store.list("Incident")) == 1


def test_async_database_url_switches_plain_sqlite():
    assert async_database_url("sqlite:///data/x.db") == "sqlite+aiosqlite:///data/x.db"
    assert async_database_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"


def test_sqlite_path_url_resolves_relative_paths(tmp_path):
    url = sqlite_path_url(str(tmp_path / "nested" / "store.db"))
    assert url == f"sqlite+aiosqlite:///{tmp_path / 'nested' / 'store.db'}"
    assert (tmp_path / "nested").is_dir()


@pytest.mark.asyncio
async def test_engine_from_database_url(monkeypatch):
    monkeypatch.setattr(settings, "database_url", "sqlite:///:memory:")
    await close_database()
    try:
        engine = get_db_engine()
        assert engine.url.drivername == "sqlite+aiosqlite"
        await init_database()
        backend = SQLBackend(get_session_maker())
        await backend.save("k", {"tables": {}})
        assert await backend.load("k") == {"tables": {}}
    finally:
        await close_database()
