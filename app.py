"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.http_client import HttpClient
from infrastructure.pixel.dispatcher import HttpPixelDispatcher
from infrastructure.social.soundcloud import SoundCloudClient
from middleware.request_logging import RequestLoggingMiddleware
from repositories.indexes import ensure_indexes
from routes.download_routes import router as download_router
from routes.gate_routes import router as gate_router
from routes.health_routes import router as health_router
from routes.oauth_routes import router as oauth_router
from shared.best_effort import BackgroundRunner
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)

# Grace period for fire-and-forget work (analytics, pixels) at shutdown
_SHUTDOWN_DRAIN_SECONDS = 10.0


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        settings.logging,
        production=settings.is_production,
        sentry_enabled=bool(settings.sentry.sentry_dsn),
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings

        # One client per external service keeps timeouts independent
        social_http = HttpClient(
            timeout=settings.gate.side_effect_timeout_seconds, service="soundcloud"
        )
        pixel_http = HttpClient(timeout=settings.pixel.pixel_timeout_seconds, service="pixel")
        app.state.social_client = SoundCloudClient(settings.soundcloud, social_http)
        app.state.pixel_dispatcher = HttpPixelDispatcher(settings.pixel, pixel_http)
        app.state.background_runner = BackgroundRunner(
            timeout=settings.pixel.pixel_timeout_seconds * 2
        )

        if not settings.soundcloud.is_configured:
            log.warning("soundcloud_not_configured")

        await ensure_indexes(app.state.db, settings.gate.oauth_state_retention_seconds)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await app.state.background_runner.drain(timeout=_SHUTDOWN_DRAIN_SECONDS)
        await social_http.aclose()
        await pixel_http.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(oauth_router)
    app.include_router(gate_router)
    app.include_router(download_router)

    return app
