"""Server-side conversion dispatch (Meta Conversions API, TikTok Events API).

Google tags are browser-only; events for them are reported as skipped.
send_event() never raises: transport and API failures come back as a
PixelResult with success=False.
"""

from __future__ import annotations

from typing import Any

from config import PixelSettings
from infrastructure.http_client import HttpClient
from infrastructure.pixel.protocol import PixelEventData, PixelResult
from schemas.models.pixel import PixelConfig, PixelPlatform
from shared.logging import get_logger

log = get_logger(__name__)

_FACEBOOK_GRAPH_URL = "https://graph.facebook.com"


class HttpPixelDispatcher:
    def __init__(self, settings: PixelSettings, http_client: HttpClient) -> None:
        self._settings = settings
        self._http = http_client

    async def send_event(
        self, platform: PixelPlatform, config: PixelConfig, event: PixelEventData
    ) -> PixelResult:
        try:
            if platform == PixelPlatform.FACEBOOK:
                return await self._send_facebook(config, event)
            if platform == PixelPlatform.TIKTOK:
                return await self._send_tiktok(config, event)
            return PixelResult(success=True, platform=platform, skipped=True)
        except Exception as e:
            log.error(
                "pixel_request_failed",
                platform=platform.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return PixelResult(success=False, platform=platform, error=str(e))

    async def _send_facebook(self, config: PixelConfig, event: PixelEventData) -> PixelResult:
        fb = config.facebook
        if fb is None or not fb.access_token:
            return PixelResult(
                success=False,
                platform=PixelPlatform.FACEBOOK,
                error="Facebook access token not configured",
            )

        user_data: dict[str, Any] = {}
        if event.email_hash:
            user_data["em"] = [event.email_hash]
        if event.ip_address:
            user_data["client_ip_address"] = event.ip_address
        if event.user_agent:
            user_data["client_user_agent"] = event.user_agent

        payload = {
            "data": [
                {
                    "event_name": event.event_name,
                    "event_time": event.event_time,
                    "event_id": event.event_id,
                    "event_source_url": event.event_source_url,
                    "action_source": "website",
                    "user_data": user_data,
                }
            ]
        }
        url = (
            f"{_FACEBOOK_GRAPH_URL}/{self._settings.facebook_graph_api_version}"
            f"/{fb.pixel_id}/events"
        )
        response = await self._http.post(
            url, json=payload, params={"access_token": fb.access_token}
        )
        if response.status_code == 200:
            return PixelResult(success=True, platform=PixelPlatform.FACEBOOK)
        log.warning(
            "facebook_capi_rejected",
            status_code=response.status_code,
            response_text=response.text[:200],
        )
        return PixelResult(
            success=False,
            platform=PixelPlatform.FACEBOOK,
            error=f"HTTP {response.status_code}",
        )

    async def _send_tiktok(self, config: PixelConfig, event: PixelEventData) -> PixelResult:
        tt = config.tiktok
        if tt is None or not tt.access_token:
            return PixelResult(
                success=False,
                platform=PixelPlatform.TIKTOK,
                error="TikTok access token not configured",
            )

        user: dict[str, Any] = {}
        if event.email_hash:
            user["email"] = event.email_hash
        if event.ip_address:
            user["ip"] = event.ip_address
        if event.user_agent:
            user["user_agent"] = event.user_agent

        payload = {
            "event_source": "web",
            "event_source_id": tt.pixel_id,
            "data": [
                {
                    "event": event.event_name,
                    "event_time": event.event_time,
                    "event_id": event.event_id,
                    "user": user,
                    "page": {"url": event.event_source_url},
                }
            ],
        }
        response = await self._http.post(
            self._settings.tiktok_events_url,
            json=payload,
            headers={"Access-Token": tt.access_token},
        )
        if response.status_code == 200 and response.json().get("code", 0) == 0:
            return PixelResult(success=True, platform=PixelPlatform.TIKTOK)
        log.warning(
            "tiktok_events_rejected",
            status_code=response.status_code,
            response_text=response.text[:200],
        )
        return PixelResult(
            success=False,
            platform=PixelPlatform.TIKTOK,
            error=f"HTTP {response.status_code}",
        )
