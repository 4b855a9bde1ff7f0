"""OAuth state repository — single-use CSRF/PKCE records."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from repositories.base import BaseRepository
from schemas.models.oauth_state import OAuthStateDoc


class OAuthStateRepository(BaseRepository[OAuthStateDoc]):
    collection_name = "oauth-states"
    model = OAuthStateDoc

    async def create(self, state: OAuthStateDoc) -> OAuthStateDoc:
        return await self.insert(state)

    async def find_by_state_token(self, state_token: str) -> Optional[OAuthStateDoc]:
        return await self._find_one({"state_token": state_token})

    async def mark_used(self, state_id: str, now: datetime) -> bool:
        """Atomically consume the record.

        Only matches while ``used`` is still false, so of two concurrent
        callers exactly one gets True. A False return means "already used".
        """
        result = await self._col.update_one(
            {"_id": state_id, "used": False},
            {"$set": {"used": True, "used_at": now}},
        )
        return result.modified_count == 1
