"""
Integration test configuration.

Routes run against the in-memory stores from ``fakes`` through
``app.dependency_overrides``; no MongoDB or network connection is made.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Ensure a MONGODB_URI is present so AppSettings can be instantiated
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")

from config import AppSettings  # noqa: E402
from dependencies import (  # noqa: E402
    get_analytics_repo,
    get_gate_repo,
    get_oauth_state_repo,
    get_submission_repo,
)
from errors import register_error_handlers  # noqa: E402
from fakes import (  # noqa: E402
    FakeAnalyticsSink,
    FakeGateStore,
    FakeOAuthStateStore,
    FakeSocialClient,
    FakeSubmissionStore,
)
from infrastructure.pixel.protocol import PixelResult  # noqa: E402
from middleware.request_logging import RequestLoggingMiddleware  # noqa: E402
from routes.download_routes import router as download_router  # noqa: E402
from routes.gate_routes import router as gate_router  # noqa: E402
from routes.oauth_routes import router as oauth_router  # noqa: E402
from schemas.models.gate import GateDoc  # noqa: E402
from schemas.models.oauth_state import OAuthStateDoc  # noqa: E402
from schemas.models.pixel import PixelPlatform  # noqa: E402
from schemas.models.submission import SubmissionDoc  # noqa: E402
from shared.best_effort import BackgroundRunner  # noqa: E402

APP_URL = "https://thebackstage.app"


class Backend:
    """Everything the routes talk to, kept in memory."""

    def __init__(self) -> None:
        self.gates = FakeGateStore()
        self.submissions = FakeSubmissionStore()
        self.states = FakeOAuthStateStore()
        self.analytics = FakeAnalyticsSink()
        self.social = FakeSocialClient()
        self.pixels = MagicMock()
        self.pixels.send_event = AsyncMock(
            return_value=PixelResult(success=True, platform=PixelPlatform.FACEBOOK)
        )
        self.runner = BackgroundRunner()

    def add(self, *docs) -> None:
        for doc in docs:
            if isinstance(doc, GateDoc):
                self.gates.gates[doc.id] = doc
            elif isinstance(doc, SubmissionDoc):
                self.submissions.docs[doc.id] = doc
            elif isinstance(doc, OAuthStateDoc):
                self.states.docs[doc.id] = doc


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest.fixture
def client(backend: Backend):
    settings = AppSettings(app_url=APP_URL)
    settings.soundcloud.soundcloud_redirect_uri = ""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.social_client = backend.social
        app.state.pixel_dispatcher = backend.pixels
        app.state.background_runner = backend.runner
        yield
        await backend.runner.drain(timeout=1)

    app = FastAPI(lifespan=lifespan)
    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)
    app.include_router(oauth_router)
    app.include_router(gate_router)
    app.include_router(download_router)

    app.dependency_overrides[get_gate_repo] = lambda: backend.gates
    app.dependency_overrides[get_submission_repo] = lambda: backend.submissions
    app.dependency_overrides[get_oauth_state_repo] = lambda: backend.states
    app.dependency_overrides[get_analytics_repo] = lambda: backend.analytics

    with TestClient(app) as test_client:
        yield test_client
