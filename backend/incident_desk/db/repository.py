"""Repository pattern for key-value blob rows."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from incident_desk.db.models import StoredBlob

logger = logging.getLogger(__name__)


class BlobRepository:
    """Repository for whole-blob reads and writes keyed by name."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_blob(self, key: str) -> str | None:
        """Return the raw JSON text stored under key, or None if never written."""
        stmt = select(StoredBlob).where(StoredBlob.key == key)
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if not row:
            return None
        return row.value

    async def put_blob(self, key: str, value: str) -> None:
        """Insert or overwrite the blob stored under key."""
        updated = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        row = await self.session.get(StoredBlob, key)
        if row is None:
            self.session.add(StoredBlob(key=key, value=value, updated_at=updated))
        else:
            row.value = value
            row.updated_at = updated
        await self.session.commit()

    async def delete_blob(self, key: str) -> bool:
        """Delete a blob. Returns True if deleted, False if not found."""
        row = await self.session.get(StoredBlob, key)
        if row is None:
            return False
        await self.session.delete(row)
        await self.session.commit()
        return True
