"""Analytics event sink (download-analytics collection)."""

from __future__ import annotations

from repositories.base import BaseRepository
from schemas.models.analytics import AnalyticsEventDoc


class AnalyticsRepository(BaseRepository[AnalyticsEventDoc]):
    collection_name = "download-analytics"
    model = AnalyticsEventDoc

    async def track(self, event: AnalyticsEventDoc) -> str:
        await self.insert(event)
        return event.id
