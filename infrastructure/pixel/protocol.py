"""PixelDispatcher protocol — services depend on this, not the concrete implementation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from schemas.models.pixel import PixelConfig, PixelPlatform


@dataclass(frozen=True)
class PixelEventData:
    event_id: str
    event_name: str
    event_time: int  # unix seconds
    event_source_url: str
    email_hash: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class PixelResult:
    success: bool
    platform: PixelPlatform
    error: Optional[str] = None
    skipped: bool = False


class PixelDispatcher(Protocol):
    async def send_event(
        self, platform: PixelPlatform, config: PixelConfig, event: PixelEventData
    ) -> PixelResult: ...
