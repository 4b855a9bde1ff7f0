"""
Download redemption endpoint.

GET /api/download/{token} — consume the token once and 302 to the file.
Invalid, expired and reused tokens surface as distinct AppError codes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from dependencies import get_download_service
from schemas.dto.responses.common import ErrorResponse
from services.download_service import DownloadService
from shared.ip_utils import get_client_ip, get_user_agent

router = APIRouter(prefix="/api/download", tags=["download"])


_ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 403, 409, 410, 500)}


@router.get("/{token}", status_code=302, responses=_ERROR_RESPONSES)
async def redeem_download(
    token: str,
    request: Request,
    service: DownloadService = Depends(get_download_service),
) -> RedirectResponse:
    result = await service.redeem(
        token,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return RedirectResponse(result.file_url, status_code=302)
