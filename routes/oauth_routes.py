"""
SoundCloud OAuth endpoints.

GET /api/auth/soundcloud           — start: 302 to the SoundCloud consent page
GET /api/auth/soundcloud/callback  — finish: 302 back to the gate page

The callback never renders an error body; every outcome is a redirect to
the public site carrying either ``soundcloud=connected`` or an ``error``
message for the gate page to display.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from config import AppSettings
from dependencies import get_oauth_callback_service, get_oauth_start_service, get_settings
from services.oauth_callback_service import OAuthCallbackService
from services.oauth_start_service import OAuthStartService
from shared.ip_utils import get_client_ip, get_user_agent

router = APIRouter(prefix="/api/auth/soundcloud", tags=["oauth"])


def callback_redirect_uri(settings: AppSettings) -> str:
    """The redirect URI registered with SoundCloud; start and callback must agree."""
    return (
        settings.soundcloud.soundcloud_redirect_uri
        or f"{settings.app_url}/api/auth/soundcloud/callback"
    )


def _error_redirect(
    settings: AppSettings, message: str, slug: Optional[str] = None
) -> RedirectResponse:
    if slug:
        query = urlencode({"soundcloud": "error", "error": message})
        return RedirectResponse(f"{settings.app_url}/gate/{slug}?{query}", status_code=302)
    return RedirectResponse(
        f"{settings.app_url}/?{urlencode({'error': message})}", status_code=302
    )


@router.get("")
async def start_soundcloud_auth(
    submission_id: str = Query(min_length=1),
    gate_id: str = Query(min_length=1),
    comment: Optional[str] = Query(default=None),
    service: OAuthStartService = Depends(get_oauth_start_service),
    settings: AppSettings = Depends(get_settings),
) -> RedirectResponse:
    url = await service.start(
        submission_id=submission_id,
        gate_id=gate_id,
        redirect_uri=callback_redirect_uri(settings),
        comment_text=comment,
    )
    return RedirectResponse(url, status_code=302)


@router.get("/callback")
async def soundcloud_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    service: OAuthCallbackService = Depends(get_oauth_callback_service),
    settings: AppSettings = Depends(get_settings),
) -> RedirectResponse:
    if error:
        result = await service.deny(
            state, error, error_description, ip_address=get_client_ip(request)
        )
        return _error_redirect(settings, result.error or "")

    result = await service.handle(
        code=code,
        state=state,
        redirect_uri=callback_redirect_uri(settings),
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    if not result.success:
        return _error_redirect(settings, result.error or "", result.gate_slug)

    params = {"soundcloud": "connected"}
    if result.buy_link_updated:
        params["buy_link"] = "updated"
    return RedirectResponse(
        f"{settings.app_url}/gate/{result.gate_slug}?{urlencode(params)}", status_code=302
    )
