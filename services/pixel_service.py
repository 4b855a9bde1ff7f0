"""
Server-side conversion tracking for gate events.

The visitor's email is normalised and SHA-256 hashed before it leaves the
service. Every enabled platform is called in parallel, each one under its own
run_best_effort() wrapper: one platform failing does not affect the others,
and track() never raises.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Optional

from infrastructure.pixel.protocol import PixelDispatcher, PixelEventData
from schemas.models.gate import GateDoc
from schemas.models.pixel import PixelEvent, PixelPlatform, event_name
from services.side_effects import gate_page_url
from shared.best_effort import run_best_effort
from shared.crypto import hash_email
from shared.generators import generate_id
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class PixelTrackResult:
    success: bool
    platforms_tracked: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class PixelTracker:
    def __init__(
        self,
        dispatcher: PixelDispatcher,
        *,
        app_url: str,
        timeout: Optional[float] = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._app_url = app_url
        self._timeout = timeout

    async def track(
        self,
        gate: GateDoc,
        event: PixelEvent,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> PixelTrackResult:
        config = gate.pixel_config
        platforms = config.enabled_platforms() if config else []
        if not platforms:
            return PixelTrackResult(success=True)

        email_hash = hash_email(email) if email else None
        event_time = int(time.time())
        source_url = gate_page_url(self._app_url, gate.slug)
        dedupe_id = event_id or generate_id()

        results = await asyncio.gather(
            *(
                run_best_effort(
                    f"pixel_{platform.value}",
                    partial(
                        self._dispatcher.send_event,
                        platform,
                        config,
                        PixelEventData(
                            event_id=dedupe_id,
                            event_name=event_name(event, platform),
                            event_time=event_time,
                            event_source_url=source_url,
                            email_hash=email_hash,
                            ip_address=ip_address,
                            user_agent=user_agent,
                        ),
                    ),
                    timeout=self._timeout,
                    gate_id=gate.id,
                    pixel_event=event.value,
                )
                for platform in platforms
            )
        )

        tracked: list[str] = []
        errors: list[str] = []
        for platform, result in zip(platforms, results):
            if not result.success:
                errors.append(f"{platform.value}: {result.error}")
            elif not getattr(result.value, "skipped", False):
                tracked.append(platform.value)

        if tracked:
            log.info(
                "pixel_event_tracked",
                gate_id=gate.id,
                pixel_event=event.value,
                platforms=tracked,
            )
        if errors:
            log.warning(
                "pixel_event_errors",
                gate_id=gate.id,
                pixel_event=event.value,
                errors=errors,
            )

        server_side = [p for p in platforms if p != PixelPlatform.GOOGLE]
        return PixelTrackResult(
            success=bool(tracked) or not server_side,
            platforms_tracked=tracked,
            errors=errors,
        )
