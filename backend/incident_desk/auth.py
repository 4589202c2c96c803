"""Single-user identity cached in the store's meta blob."""
from __future__ import annotations

import logging

from incident_desk.models import User
from incident_desk.store import RecordStore

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "currentUser"
DEMO_USER = User(id="user_demo", email="demo.user@example.com", full_name="Demo User")


class Auth:
    def __init__(self, store: RecordStore):
        self.store = store

    async def me(self) -> User:
        """Cached identity, or the demo user (cached on first call)."""
        saved = await self.store.get_meta(CURRENT_USER_KEY)
        if saved:
            return User.model_validate(saved)
        await self.store.set_meta(CURRENT_USER_KEY, DEMO_USER.model_dump())
        return DEMO_USER.model_copy()

    async def logout(self) -> None:
        """Forget the cached identity; stored data is kept."""
        await self.store.set_meta(CURRENT_USER_KEY, None)
        logger.info("Logged out")
