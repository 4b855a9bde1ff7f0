"""
Unit tests for services.download_service.

Redemption is single-use: of N concurrent attempts exactly one is served,
and a served download is always counted on the gate.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from errors import (
    DownloadNotRecordedError,
    ExpiredTokenError,
    GateExpiredError,
    GateInactiveError,
    InvalidTokenError,
    TokenAlreadyUsedError,
)
from fakes import (
    NOW,
    FakeAnalyticsSink,
    FakeGateStore,
    FakeSubmissionStore,
    make_gate,
    make_submission,
)
from infrastructure.pixel.protocol import PixelResult
from schemas.models.analytics import AnalyticsEventType
from schemas.models.pixel import PixelPlatform
from services.download_service import DownloadService
from services.pixel_service import PixelTracker
from shared.best_effort import BackgroundRunner

TOKEN = "ab" * 32
PIXELS = {"facebook": {"enabled": True, "pixel_id": "fb-1", "access_token": "fb-token"}}


class Harness:
    def __init__(self, gate=None, submission=None, analytics_fail=False, gates=None):
        self.gates = gates or FakeGateStore(gate or make_gate())
        self.submissions = FakeSubmissionStore(
            submission
            or make_submission(
                download_token=TOKEN, download_token_expires_at=NOW + timedelta(hours=1)
            )
        )
        self.analytics = FakeAnalyticsSink(fail=analytics_fail)
        self.dispatcher = MagicMock()
        self.dispatcher.send_event = AsyncMock(
            return_value=PixelResult(success=True, platform=PixelPlatform.FACEBOOK)
        )
        self.runner = BackgroundRunner()
        self.service = DownloadService(
            self.gates,
            self.submissions,
            self.analytics,
            PixelTracker(self.dispatcher, app_url="https://thebackstage.app"),
            self.runner,
        )

    async def redeem(self, token=TOKEN, now=NOW):
        return await self.service.redeem(token, ip_address="1.2.3.4", user_agent="pytest", now=now)

    @property
    def download_count(self) -> int:
        return self.gates.gates["gate-1"].download_count

    @property
    def completed(self) -> bool:
        return self.submissions.get("sub-1").download_completed


class TestRedeemSuccess:
    async def test_returns_file_url_and_records(self):
        h = Harness()

        result = await h.redeem()

        assert result.success is True
        assert result.file_url == "https://files.example.com/summer-mix.zip"
        assert h.completed is True
        assert h.submissions.get("sub-1").download_completed_at == NOW
        assert h.download_count == 1

    async def test_analytics_event_recorded_in_background(self):
        h = Harness()

        await h.redeem()
        await h.runner.drain(timeout=1)

        (event,) = h.analytics.events
        assert event.event_type == AnalyticsEventType.DOWNLOAD
        assert event.submission_id == "sub-1"
        assert event.ip_address == "1.2.3.4"

    async def test_analytics_failure_does_not_affect_result(self):
        h = Harness(analytics_fail=True)

        result = await h.redeem()
        await h.runner.drain(timeout=1)

        assert result.success is True
        assert h.download_count == 1

    async def test_pixel_conversion_shares_analytics_event_id(self):
        h = Harness(gate=make_gate(pixel_config=PIXELS))

        await h.redeem()
        await h.runner.drain(timeout=1)

        platform, _, event = h.dispatcher.send_event.call_args.args
        assert platform == PixelPlatform.FACEBOOK
        assert event.event_name == "CompleteRegistration"
        assert event.event_id == h.analytics.events[0].id

    async def test_no_pixel_without_config(self):
        h = Harness()

        await h.redeem()
        await h.runner.drain(timeout=1)

        h.dispatcher.send_event.assert_not_called()


class TestRedeemRejections:
    @pytest.mark.parametrize(
        "token",
        ["", "short", "zz" * 32, TOKEN + "00", "../../etc/passwd"],
        ids=["empty", "short", "non_hex", "too_long", "path"],
    )
    async def test_malformed_token(self, token):
        h = Harness()
        with pytest.raises(InvalidTokenError):
            await h.redeem(token)

    async def test_unknown_token(self):
        h = Harness()
        with pytest.raises(InvalidTokenError):
            await h.redeem("cd" * 32)

    async def test_expired_token_leaves_state_untouched(self):
        h = Harness()

        with pytest.raises(ExpiredTokenError):
            await h.redeem(now=NOW + timedelta(hours=2))

        assert h.completed is False
        assert h.download_count == 0

    async def test_second_redeem_rejected(self):
        h = Harness()
        await h.redeem()

        with pytest.raises(TokenAlreadyUsedError):
            await h.redeem()
        assert h.download_count == 1

    async def test_expiry_reported_before_redemption(self):
        h = Harness()
        await h.redeem()

        with pytest.raises(ExpiredTokenError):
            await h.redeem(now=NOW + timedelta(hours=2))

    @pytest.mark.parametrize(
        "gate, error_cls",
        [
            (make_gate(active=False), GateInactiveError),
            (make_gate(expires_at=NOW - timedelta(days=1)), GateExpiredError),
            (make_gate(_id="other-gate"), InvalidTokenError),
        ],
        ids=["inactive", "expired", "missing"],
    )
    async def test_gate_not_usable(self, gate, error_cls):
        h = Harness(gate=gate)

        with pytest.raises(error_cls):
            await h.redeem()
        assert h.completed is False


class TestConcurrentRedeem:
    async def test_exactly_one_success(self):
        h = Harness()

        results = await asyncio.gather(*(h.redeem() for _ in range(10)), return_exceptions=True)

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 9
        assert all(isinstance(f, TokenAlreadyUsedError) for f in failures)
        assert h.download_count == 1
        assert h.gates.increment_calls == 1


class TestCounterFailure:
    async def test_increment_failure_reverts_completion(self):
        h = Harness()
        h.gates.fail_increment = True

        with pytest.raises(DownloadNotRecordedError):
            await h.redeem()

        assert h.completed is False
        assert h.submissions.get("sub-1").download_completed_at is None
        assert h.analytics.events == []

    async def test_retry_after_revert_succeeds(self):
        h = Harness()
        h.gates.fail_increment = True
        with pytest.raises(DownloadNotRecordedError):
            await h.redeem()

        h.gates.fail_increment = False
        result = await h.redeem()

        assert result.success is True
        assert h.download_count == 1

    async def test_increment_exception_reverts_completion(self):
        class BrokenGateStore(FakeGateStore):
            async def increment_download_count(self, gate_id):
                raise RuntimeError("primary stepped down")

        h = Harness(gates=BrokenGateStore(make_gate()))

        with pytest.raises(DownloadNotRecordedError):
            await h.redeem()
        assert h.completed is False
