"""Assembled client: entities, generator functions, identity and the analysis provider."""
from __future__ import annotations

import logging
from typing import Any

from incident_desk import generators
from incident_desk.auth import Auth
from incident_desk.config import settings
from incident_desk.db.backends import PersistenceBackend, get_backend
from incident_desk.entities import Entities
from incident_desk.llm import LLMProvider, get_llm_provider
from incident_desk.seed import ensure_seeded
from incident_desk.store import RecordStore

logger = logging.getLogger(__name__)


class Functions:
    """Generator dispatch bound to one set of entities."""

    def __init__(self, entities: Entities):
        self.entities = entities

    @property
    def names(self) -> list[str]:
        return list(generators.GENERATORS)

    async def invoke(self, name: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        return await generators.invoke(self.entities, name, payload)


class Client:
    def __init__(self, store: RecordStore, llm: LLMProvider | None = None):
        self.store = store
        self.entities = Entities(store)
        self.functions = Functions(self.entities)
        self.auth = Auth(store)
        self.llm = llm or get_llm_provider()

    async def close(self) -> None:
        await self.store.backend.close()


async def create_client(
    backend: PersistenceBackend | None = None,
    *,
    seed: bool | None = None,
    llm: LLMProvider | None = None,
) -> Client:
    """Open the store on backend (settings-selected when omitted) and seed it if configured."""
    backend = backend or await get_backend()
    store = await RecordStore.open(
        backend,
        db_key=settings.db_storage_key,
        meta_key=settings.meta_storage_key,
    )
    if settings.seed_demo_data if seed is None else seed:
        await ensure_seeded(store)
    logger.info("Client ready (backend=%s, durable=%s)", store.backend.name, store.durable)
    return Client(store, llm=llm)
