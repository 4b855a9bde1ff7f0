"""
Gate repository — public, owner-free reads plus the download counter.

Owner-scoped CRUD for gates lives in the dashboard service; this repository
only exposes what the verification pipeline needs.
"""

from __future__ import annotations

from typing import Optional

from repositories.base import BaseRepository
from schemas.models.gate import GateDoc
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)


class GateRepository(BaseRepository[GateDoc]):
    collection_name = "download-gates"
    model = GateDoc

    async def find_for_verification(self, gate_id: str) -> Optional[GateDoc]:
        """Public lookup by id; no owner context required."""
        return await self.find_by_id(gate_id)

    async def find_by_slug(self, slug: str) -> Optional[GateDoc]:
        return await self._find_one({"slug": slug})

    async def increment_download_count(self, gate_id: str) -> bool:
        """Add one completed download to the gate. False when the gate is gone."""
        result = await self._col.update_one(
            {"_id": gate_id},
            {"$inc": {"download_count": 1}, "$set": {"updated_at": utc_now()}},
        )
        if result.matched_count != 1:
            log.warning("gate_download_count_not_incremented", gate_id=gate_id)
            return False
        return True
