"""Typed per-entity access over the record store."""
from __future__ import annotations

from typing import Any, Generic, Mapping, TypeVar

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from incident_desk.models import (
    AuditLog,
    Decision,
    Incident,
    IncidentAutomation,
    KnowledgeBaseArticle,
    PostIncidentReview,
    PredictiveAlert,
    StoredRecord,
)
from incident_desk.store import IMMUTABLE_FIELDS, RecordStore

ModelT = TypeVar("ModelT", bound=StoredRecord)

DEFAULT_SORT = "-created_date"
DEFAULT_LIST_LIMIT = 100
DEFAULT_FILTER_LIMIT = 1000

# Stand-ins for the store-owned fields while a payload is checked
PLACEHOLDER_FIELDS = {"id": "", "created_date": "", "updated_date": ""}


def to_fields(data: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
    """Plain JSON-compatible dict from a mapping or model (models: only fields that were set)."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_unset=True)
    return to_jsonable_python(dict(data))


class EntityTable(Generic[ModelT]):
    """Binds one table name and its model to the store's generic operations."""

    def __init__(self, store: RecordStore, table: str, model: type[ModelT]):
        self.store = store
        self.table = table
        self.model = model

    def _wrap(self, record: dict[str, Any]) -> ModelT:
        return self.model.model_validate(record)

    async def list(self, sort: str | None = DEFAULT_SORT, limit: int = DEFAULT_LIST_LIMIT) -> list[ModelT]:
        return [self._wrap(r) for r in await self.store.list(self.table, sort=sort, limit=limit)]

    async def filter(
        self,
        where: Mapping[str, Any] | None = None,
        sort: str | None = DEFAULT_SORT,
        limit: int = DEFAULT_FILTER_LIMIT,
    ) -> list[ModelT]:
        rows = await self.store.filter(self.table, where=where, sort=sort, limit=limit)
        return [self._wrap(r) for r in rows]

    async def get(self, record_id: str) -> ModelT | None:
        if not record_id:
            return None
        rows = await self.store.filter(self.table, where={"id": record_id}, sort=None, limit=1)
        return self._wrap(rows[0]) if rows else None

    def _check(self, record: Mapping[str, Any]) -> None:
        """Raise ValidationError if record would not load back as the model."""
        fields = {k: v for k, v in record.items() if k != "id"}
        self.model.model_validate({**PLACEHOLDER_FIELDS, **fields})

    async def create(self, data: Mapping[str, Any] | BaseModel) -> ModelT:
        fields = to_fields(data)
        self._check(fields)
        return self._wrap(await self.store.create(self.table, fields))

    async def update(self, record_id: str, data: Mapping[str, Any] | BaseModel) -> ModelT:
        fields = to_fields(data)
        rows = await self.store.filter(self.table, where={"id": record_id}, sort=None, limit=1)
        if rows:
            changes = {k: v for k, v in fields.items() if k not in IMMUTABLE_FIELDS}
            self._check({**rows[0], **changes})
        return self._wrap(await self.store.update(self.table, record_id, fields))

    async def delete(self, record_id: str) -> bool:
        return await self.store.delete(self.table, record_id)


class Entities:
    """One EntityTable per entity, reachable by attribute or by table name."""

    def __init__(self, store: RecordStore):
        self.store = store
        self.incidents = EntityTable(store, "Incident", Incident)
        self.decisions = EntityTable(store, "Decision", Decision)
        self.audit_logs = EntityTable(store, "AuditLog", AuditLog)
        self.predictive_alerts = EntityTable(store, "PredictiveAlert", PredictiveAlert)
        self.post_incident_reviews = EntityTable(store, "PostIncidentReview", PostIncidentReview)
        self.incident_automations = EntityTable(store, "IncidentAutomation", IncidentAutomation)
        self.knowledge_articles = EntityTable(store, "KnowledgeBaseArticle", KnowledgeBaseArticle)
        self._by_table: dict[str, EntityTable[Any]] = {
            t.table: t
            for t in (
                self.incidents,
                self.decisions,
                self.audit_logs,
                self.predictive_alerts,
                self.post_incident_reviews,
                self.incident_automations,
                self.knowledge_articles,
            )
        }

    def by_table(self, table: str) -> EntityTable[Any] | None:
        return self._by_table.get(table)

    @property
    def table_names(self) -> list[str]:
        return list(self._by_table)
