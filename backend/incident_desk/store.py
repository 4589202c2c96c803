"""Table-oriented record store persisted as one JSON blob per durable key.

The whole store (every table) is written through the backend on each
mutation. There are no transactions: a workflow that performs several
mutations may stop halfway and leave the earlier ones applied.
"""
from __future__ import annotations

import copy
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Union

from incident_desk.db.backends import MemoryBackend, PersistenceBackend
from incident_desk.exceptions import NotFoundError, StorageUnavailableError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DEFAULT_DB_KEY = "icdi_local_db_v1"
DEFAULT_META_KEY = "icdi_local_meta_v1"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# Fields the store owns; update() never lets a patch touch the first two.
IMMUTABLE_FIELDS = ("id", "created_date")

Record = dict[str, Any]


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO 8601 so lexical order matches chronological order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Any) -> datetime | None:
    """Read a stored ISO 8601 timestamp; None when missing or malformed."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _initial_db() -> dict[str, Any]:
    return {"tables": {}, "version": SCHEMA_VERSION}


def _initial_meta() -> dict[str, Any]:
    return {"seeded": False, "currentUser": None}


def _strict_equal(a: Any, b: Any) -> bool:
    # True == 1 in Python; keep booleans apart from numbers
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


@dataclass(frozen=True)
class Equals:
    """Field equals value."""

    value: Any

    def matches(self, field_value: Any) -> bool:
        return _strict_equal(field_value, self.value)


@dataclass(frozen=True)
class Intersects:
    """Field is a list sharing at least one element with values."""

    values: tuple[Any, ...]

    def matches(self, field_value: Any) -> bool:
        if not isinstance(field_value, list):
            return False
        return any(_strict_equal(item, v) for v in self.values for item in field_value)


Matcher = Union[Equals, Intersects]


def compile_where(where: Mapping[str, Any] | None) -> dict[str, Matcher]:
    """Turn a raw where-mapping into tagged matchers.

    Lists, tuples and sets become Intersects, None means no constraint,
    anything else becomes Equals. Matchers passed in are kept as-is.
    """
    matchers: dict[str, Matcher] = {}
    for field, expected in (where or {}).items():
        if expected is None:
            continue
        if isinstance(expected, (Equals, Intersects)):
            matchers[field] = expected
        elif isinstance(expected, (list, tuple, set, frozenset)):
            matchers[field] = Intersects(tuple(expected))
        else:
            matchers[field] = Equals(expected)
    return matchers


def matches_where(record: Mapping[str, Any], matchers: Mapping[str, Matcher]) -> bool:
    return all(m.matches(record.get(field)) for field, m in matchers.items())


def _sort_key(value: Any) -> tuple[int, Any]:
    # missing < numbers < strings < everything else (by canonical JSON)
    if value is None:
        return (0, 0)
    if isinstance(value, (bool, int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, json.dumps(value, sort_keys=True, default=str))


def sort_records(records: Iterable[Record], sort: str | None) -> list[Record]:
    """Stable sort by one field; a leading '-' means descending."""
    items = list(records)
    if not sort:
        return items
    desc = sort.startswith("-")
    field = sort[1:] if desc else sort
    return sorted(items, key=lambda r: _sort_key(r.get(field)), reverse=desc)


class RecordStore:
    """Named tables of dict records with generic CRUD, filtering and sorting."""

    def __init__(
        self,
        backend: PersistenceBackend,
        *,
        db_key: str = DEFAULT_DB_KEY,
        meta_key: str = DEFAULT_META_KEY,
        clock: Callable[[], datetime] | None = None,
    ):
        self._backend = backend
        self.db_key = db_key
        self.meta_key = meta_key
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_time: datetime | None = None
        self._db: dict[str, Any] | None = None
        self._meta: dict[str, Any] | None = None

    @classmethod
    async def open(cls, backend: PersistenceBackend, **kwargs: Any) -> "RecordStore":
        """Construct a store and load both blobs from the backend."""
        store = cls(backend, **kwargs)
        await store.load()
        return store

    @property
    def backend(self) -> PersistenceBackend:
        return self._backend

    @property
    def durable(self) -> bool:
        return self._backend.durable

    # --- clock ---

    def current_time(self) -> datetime:
        """Strictly increasing UTC time for this store."""
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if self._last_time is not None and now <= self._last_time:
            now = self._last_time + timedelta(microseconds=1)
        self._last_time = now
        return now

    def now(self) -> str:
        return format_timestamp(self.current_time())

    # --- loading / persistence ---

    async def load(self) -> None:
        """(Re)load the table and meta blobs, falling back to empty ones."""
        blob = await self._read(self.db_key)
        if blob is not None and not isinstance(blob.get("tables"), dict):
            logger.warning("Ignoring malformed store blob under %s", self.db_key)
            blob = None
        if blob is None:
            blob = _initial_db()
        elif blob.get("version") != SCHEMA_VERSION:
            logger.warning("Store blob version %s differs from %s", blob.get("version"), SCHEMA_VERSION)
        blob["tables"] = {
            name: records for name, records in blob["tables"].items() if isinstance(records, list)
        }
        self._db = blob

        meta = await self._read(self.meta_key)
        self._meta = {**_initial_meta(), **(meta or {})}

    async def _ensure_loaded(self) -> None:
        if self._db is None or self._meta is None:
            await self.load()

    async def _read(self, key: str) -> dict[str, Any] | None:
        try:
            return await self._backend.load(key)
        except StorageUnavailableError as e:
            self._degrade(e)
            return None

    async def _write(self, key: str, blob: dict[str, Any]) -> None:
        try:
            await self._backend.save(key, blob)
        except StorageUnavailableError as e:
            self._degrade(e)
            await self._backend.save(key, blob)

    def _degrade(self, error: StorageUnavailableError) -> None:
        logger.warning("Continuing with in-memory storage only: %s", error)
        self._backend = MemoryBackend()

    async def _persist(self) -> None:
        await self._write(self.db_key, self._db)

    async def _persist_meta(self) -> None:
        await self._write(self.meta_key, self._meta)

    def _table(self, table: str) -> list[Record]:
        return self._db["tables"].setdefault(table, [])

    # --- meta ---

    async def get_meta(self, key: str) -> Any:
        await self._ensure_loaded()
        return copy.deepcopy(self._meta.get(key))

    async def set_meta(self, key: str, value: Any) -> None:
        await self._ensure_loaded()
        self._meta[key] = copy.deepcopy(value)
        await self._persist_meta()

    # --- table operations ---

    async def list(self, table: str, sort: str | None = "-created_date", limit: int = 100) -> list[Record]:
        await self._ensure_loaded()
        ordered = sort_records(self._table(table), sort)
        return copy.deepcopy(ordered[:max(limit, 0)])

    async def filter(
        self,
        table: str,
        where: Mapping[str, Any] | None = None,
        sort: str | None = "-created_date",
        limit: int = 1000,
    ) -> list[Record]:
        await self._ensure_loaded()
        matchers = compile_where(where)
        selected = [r for r in self._table(table) if matches_where(r, matchers)]
        ordered = sort_records(selected, sort)
        return copy.deepcopy(ordered[:max(limit, 0)])

    async def create(self, table: str, data: Mapping[str, Any]) -> Record:
        """Append a record with a fresh id; caller timestamps override the defaults."""
        await self._ensure_loaded()
        now = self.now()
        fields = {k: v for k, v in data.items() if k != "id"}
        record = {
            "id": str(uuid.uuid4()),
            "created_date": now,
            "updated_date": now,
            **copy.deepcopy(fields),
        }
        self._table(table).append(record)
        await self._persist()
        return copy.deepcopy(record)

    async def update(self, table: str, record_id: str, patch: Mapping[str, Any]) -> Record:
        """Shallow-merge patch onto the record and refresh updated_date."""
        await self._ensure_loaded()
        rows = self._table(table)
        idx = next((i for i, r in enumerate(rows) if r.get("id") == record_id), -1)
        if idx == -1:
            raise NotFoundError(table, record_id)
        changes = {k: v for k, v in patch.items() if k not in IMMUTABLE_FIELDS}
        rows[idx] = {**rows[idx], **copy.deepcopy(changes), "updated_date": self.now()}
        await self._persist()
        return copy.deepcopy(rows[idx])

    async def delete(self, table: str, record_id: str) -> bool:
        """Remove a record. Returns True if deleted, False if it was already absent."""
        await self._ensure_loaded()
        rows = self._table(table)
        idx = next((i for i, r in enumerate(rows) if r.get("id") == record_id), -1)
        if idx == -1:
            return False
        del rows[idx]
        await self._persist()
        return True

    # --- bulk escape hatches ---

    async def table_names(self) -> list[str]:
        await self._ensure_loaded()
        return sorted(self._db["tables"])

    async def dump(self) -> dict[str, Any]:
        """Deep copy of the whole store blob."""
        await self._ensure_loaded()
        return copy.deepcopy(self._db)

    async def restore(self, blob: Mapping[str, Any]) -> None:
        """Replace every table with the contents of blob and persist."""
        tables = blob.get("tables")
        if not isinstance(tables, dict):
            raise ValueError("store blob must contain a 'tables' object")
        await self._ensure_loaded()
        self._db = {
            "tables": {name: copy.deepcopy(rows) for name, rows in tables.items() if isinstance(rows, list)},
            "version": blob.get("version", SCHEMA_VERSION),
        }
        await self._persist()

    async def replace_table(self, table: str, records: Iterable[Mapping[str, Any]]) -> None:
        """Overwrite one table verbatim (records keep their own ids and dates)."""
        await self._ensure_loaded()
        self._db["tables"][table] = [copy.deepcopy(dict(r)) for r in records]
        await self._persist()

    async def reset(self) -> None:
        """Drop every table and the meta blob."""
        self._db = _initial_db()
        self._meta = _initial_meta()
        await self._persist()
        await self._persist_meta()
