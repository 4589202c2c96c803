"""Persistence backends for the record store.

Every backend stores whole JSON blobs under a small number of durable keys.
Driver failures are reported as StorageUnavailableError so the store can
degrade to memory-only operation.
"""
from __future__ import annotations

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from incident_desk.config import settings
from incident_desk.db.factory import get_session_maker, init_database
from incident_desk.db.repository import BlobRepository
from incident_desk.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


class PersistenceBackend(ABC):
    name: str = "abstract"

    @abstractmethod
    async def load(self, key: str) -> dict[str, Any] | None:
        """Return the blob stored under key, or None if the key was never written."""
        ...

    @abstractmethod
    async def save(self, key: str, blob: dict[str, Any]) -> None:
        """Overwrite the blob stored under key."""
        ...

    @property
    @abstractmethod
    def durable(self) -> bool:
        """Whether saved blobs survive a process restart."""
        ...

    async def close(self) -> None:
        """Release connections (no-op by default)."""


class MemoryBackend(PersistenceBackend):
    """Keeps blobs in a dict. Data is lost when the process exits."""

    name = "memory"

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None):
        self._blobs: dict[str, dict[str, Any]] = copy.deepcopy(initial) if initial else {}

    async def load(self, key: str) -> dict[str, Any] | None:
        blob = self._blobs.get(key)
        return copy.deepcopy(blob) if blob is not None else None

    async def save(self, key: str, blob: dict[str, Any]) -> None:
        self._blobs[key] = copy.deepcopy(blob)

    @property
    def durable(self) -> bool:
        return False


class SQLBackend(PersistenceBackend):
    """Stores each key as one row of the kv_store table."""

    name = "sqlite"

    def __init__(self, session_maker: sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def load(self, key: str) -> dict[str, Any] | None:
        try:
            async with self._session_maker() as session:
                raw = await BlobRepository(session).get_blob(key)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(self.name, str(e)) from e
        return _decode(key, raw)

    async def save(self, key: str, blob: dict[str, Any]) -> None:
        raw = json.dumps(blob, default=str)
        try:
            async with self._session_maker() as session:
                await BlobRepository(session).put_blob(key, raw)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(self.name, str(e)) from e

    @property
    def durable(self) -> bool:
        return True


class RedisBackend(PersistenceBackend):
    """Stores each key as a Redis string holding JSON."""

    name = "redis"

    def __init__(self, client: Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        return cls(Redis.from_url(url.strip(), decode_responses=True))

    async def load(self, key: str) -> dict[str, Any] | None:
        try:
            raw = await self._client.get(key)
        except (RedisError, OSError) as e:
            raise StorageUnavailableError(self.name, str(e)) from e
        return _decode(key, raw)

    async def save(self, key: str, blob: dict[str, Any]) -> None:
        try:
            await self._client.set(key, json.dumps(blob, default=str))
        except (RedisError, OSError) as e:
            raise StorageUnavailableError(self.name, str(e)) from e

    @property
    def durable(self) -> bool:
        return True

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except (RedisError, OSError) as e:
            logger.warning("Redis close: %s", e)


def _decode(key: str, raw: str | None) -> dict[str, Any] | None:
    if raw is None:
        return None
    try:
        blob = json.loads(raw)
    except ValueError as e:
        logger.warning("Discarding undecodable blob %s: %s", key, e)
        return None
    if not isinstance(blob, dict):
        logger.warning("Discarding non-object blob %s", key)
        return None
    return blob


async def get_backend() -> PersistenceBackend:
    """Build the backend selected by settings.storage_backend."""
    kind = (settings.storage_backend or "sqlite").strip().lower()
    if kind == "memory":
        logger.info("Using in-memory storage; data is lost on restart")
        return MemoryBackend()
    if kind == "redis":
        if not settings.redis_url.strip():
            logger.warning("storage_backend=redis but REDIS_URL is empty; using in-memory storage")
            return MemoryBackend()
        logger.info("Using Redis storage")
        return RedisBackend.from_url(settings.redis_url)

    try:
        await init_database()
    except (SQLAlchemyError, OSError) as e:
        logger.warning("SQL storage disabled: %s", e)
        return MemoryBackend()
    return SQLBackend(get_session_maker())
