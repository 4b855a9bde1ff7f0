"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Long-lived clients (MongoDB, HTTP, the social
platform client, the background runner) live on app.state and are created
in the application lifespan; repositories and services are cheap and are
built per request on top of them.
"""

from __future__ import annotations

from fastapi import Depends, Request

from config import AppSettings
from infrastructure.pixel.protocol import PixelDispatcher
from infrastructure.social.protocol import SocialPlatformClient
from repositories.analytics_repository import AnalyticsRepository
from repositories.gate_repository import GateRepository
from repositories.oauth_state_repository import OAuthStateRepository
from repositories.submission_repository import SubmissionRepository
from services.download_service import DownloadService
from services.download_token_service import DownloadTokenService
from services.oauth_callback_service import OAuthCallbackService
from services.oauth_start_service import OAuthStartService
from services.pixel_service import PixelTracker
from services.profile_click_service import ProfileClickService
from services.side_effects import SideEffectOrchestrator
from shared.best_effort import BackgroundRunner


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


async def get_db(request: Request):
    """Return the async MongoDB database from app.state."""
    return request.app.state.db


def get_social_client(request: Request) -> SocialPlatformClient:
    return request.app.state.social_client


def get_pixel_dispatcher(request: Request) -> PixelDispatcher:
    return request.app.state.pixel_dispatcher


def get_background_runner(request: Request) -> BackgroundRunner:
    return request.app.state.background_runner


# ── Repositories ─────────────────────────────────────────────────────────────


async def get_gate_repo(db=Depends(get_db)) -> GateRepository:
    return GateRepository(db[GateRepository.collection_name])


async def get_submission_repo(db=Depends(get_db)) -> SubmissionRepository:
    return SubmissionRepository(db[SubmissionRepository.collection_name])


async def get_oauth_state_repo(db=Depends(get_db)) -> OAuthStateRepository:
    return OAuthStateRepository(db[OAuthStateRepository.collection_name])


async def get_analytics_repo(db=Depends(get_db)) -> AnalyticsRepository:
    return AnalyticsRepository(db[AnalyticsRepository.collection_name])


# ── Services ─────────────────────────────────────────────────────────────────


def get_oauth_start_service(
    client: SocialPlatformClient = Depends(get_social_client),
    states: OAuthStateRepository = Depends(get_oauth_state_repo),
    submissions: SubmissionRepository = Depends(get_submission_repo),
    settings: AppSettings = Depends(get_settings),
) -> OAuthStartService:
    return OAuthStartService(
        client,
        states,
        submissions,
        state_ttl_seconds=settings.gate.oauth_state_ttl_seconds,
    )


def get_side_effect_orchestrator(
    client: SocialPlatformClient = Depends(get_social_client),
    submissions: SubmissionRepository = Depends(get_submission_repo),
    settings: AppSettings = Depends(get_settings),
) -> SideEffectOrchestrator:
    return SideEffectOrchestrator(
        client,
        submissions,
        app_url=settings.app_url,
        buy_link_title=settings.gate.buy_link_title,
        timeout=settings.gate.side_effect_timeout_seconds,
    )


def get_oauth_callback_service(
    client: SocialPlatformClient = Depends(get_social_client),
    states: OAuthStateRepository = Depends(get_oauth_state_repo),
    gates: GateRepository = Depends(get_gate_repo),
    submissions: SubmissionRepository = Depends(get_submission_repo),
    orchestrator: SideEffectOrchestrator = Depends(get_side_effect_orchestrator),
    settings: AppSettings = Depends(get_settings),
) -> OAuthCallbackService:
    return OAuthCallbackService(
        client,
        states,
        gates,
        submissions,
        orchestrator,
        timeout=settings.gate.side_effect_timeout_seconds,
    )


def get_download_token_service(
    gates: GateRepository = Depends(get_gate_repo),
    submissions: SubmissionRepository = Depends(get_submission_repo),
    settings: AppSettings = Depends(get_settings),
) -> DownloadTokenService:
    return DownloadTokenService(
        gates,
        submissions,
        token_ttl_seconds=settings.gate.download_token_ttl_seconds,
    )


def get_pixel_tracker(
    dispatcher: PixelDispatcher = Depends(get_pixel_dispatcher),
    settings: AppSettings = Depends(get_settings),
) -> PixelTracker:
    return PixelTracker(
        dispatcher, app_url=settings.app_url, timeout=settings.pixel.pixel_timeout_seconds
    )


def get_download_service(
    gates: GateRepository = Depends(get_gate_repo),
    submissions: SubmissionRepository = Depends(get_submission_repo),
    analytics: AnalyticsRepository = Depends(get_analytics_repo),
    pixels: PixelTracker = Depends(get_pixel_tracker),
    runner: BackgroundRunner = Depends(get_background_runner),
) -> DownloadService:
    return DownloadService(gates, submissions, analytics, pixels, runner)


def get_profile_click_service(
    gates: GateRepository = Depends(get_gate_repo),
    submissions: SubmissionRepository = Depends(get_submission_repo),
    analytics: AnalyticsRepository = Depends(get_analytics_repo),
    runner: BackgroundRunner = Depends(get_background_runner),
) -> ProfileClickService:
    return ProfileClickService(gates, submissions, analytics, runner)
