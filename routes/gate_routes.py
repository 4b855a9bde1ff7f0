"""
Public gate endpoints used by the gate page.

POST /api/gate/{slug}/download-token  — issue (or re-issue) the download token
GET  /api/gate/profile-click          — record a profile visit
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from config import AppSettings
from dependencies import (
    get_download_token_service,
    get_gate_repo,
    get_profile_click_service,
    get_settings,
)
from errors import AppError, ConflictError, ForbiddenError, NotFoundError
from repositories.gate_repository import GateRepository
from schemas.dto.requests.gate import DownloadTokenRequest
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.gate import DownloadTokenResponse, ProfileClickResponse
from services.download_token_service import DownloadTokenService, TokenIssueFailure
from services.profile_click_service import ProfileClickService
from shared.ip_utils import get_client_ip, get_user_agent

router = APIRouter(prefix="/api/gate", tags=["gate"])

_ISSUE_FAILURE_ERRORS: dict[TokenIssueFailure, type[AppError]] = {
    TokenIssueFailure.SUBMISSION_NOT_FOUND: NotFoundError,
    TokenIssueFailure.ALREADY_DOWNLOADED: ConflictError,
    TokenIssueFailure.GATE_NOT_FOUND: NotFoundError,
    TokenIssueFailure.GATE_INACTIVE: ForbiddenError,
    TokenIssueFailure.GATE_EXPIRED: ForbiddenError,
    TokenIssueFailure.VERIFICATION_INCOMPLETE: ForbiddenError,
    TokenIssueFailure.MAX_DOWNLOADS_REACHED: ForbiddenError,
}


@router.get(
    "/profile-click",
    response_model=ProfileClickResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def track_profile_click(
    request: Request,
    submission_id: str = Query(min_length=1),
    gate_id: str = Query(min_length=1),
    service: ProfileClickService = Depends(get_profile_click_service),
) -> ProfileClickResponse:
    result = await service.track(
        submission_id,
        gate_id,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return ProfileClickResponse(
        profile_url=result.profile_url, already_tracked=result.already_tracked
    )


@router.post(
    "/{slug}/download-token",
    response_model=DownloadTokenResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def issue_download_token(
    slug: str,
    body: DownloadTokenRequest,
    gates: GateRepository = Depends(get_gate_repo),
    service: DownloadTokenService = Depends(get_download_token_service),
    settings: AppSettings = Depends(get_settings),
) -> DownloadTokenResponse:
    gate = await gates.find_by_slug(slug)
    if gate is None:
        raise NotFoundError("Download gate not found")

    result = await service.issue(body.submission_id, gate_id=gate.id)
    if not result.success:
        error_cls = _ISSUE_FAILURE_ERRORS[result.reason]
        raise error_cls(result.error or "", details={"reason": result.reason.value})

    return DownloadTokenResponse(
        token=result.token,
        expires_at=result.expires_at,
        download_url=f"{settings.app_url}/api/download/{result.token}",
    )
