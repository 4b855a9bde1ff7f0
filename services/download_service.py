"""
Download token redemption.

redeem() validates a token and consumes it exactly once. The consume step
is two writes that must both land:

1. a conditional flip of ``download_completed`` (only one concurrent caller
   can match the ``download_completed == false`` filter), then
2. an increment of the gate's download counter.

If the increment fails, the flip is undone and DownloadNotRecordedError is
raised, so a download is never served without being counted.

Analytics and pixel dispatch are fire-and-forget and outside the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from errors import (
    DownloadNotRecordedError,
    ExpiredTokenError,
    GateExpiredError,
    GateInactiveError,
    InvalidTokenError,
    TokenAlreadyUsedError,
)
from repositories.protocol import AnalyticsSink, GateStore, SubmissionStore
from schemas.models.analytics import AnalyticsEventDoc, AnalyticsEventType
from schemas.models.download_token import DownloadToken, DownloadTokenState
from schemas.models.gate import GateDoc
from schemas.models.pixel import PixelEvent
from schemas.models.submission import SubmissionDoc
from services.pixel_service import PixelTracker
from shared.best_effort import BackgroundRunner
from shared.datetime_utils import utc_now
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)


@dataclass(frozen=True)
class RedeemResult:
    success: bool
    file_url: Optional[str] = None


class DownloadService:
    def __init__(
        self,
        gates: GateStore,
        submissions: SubmissionStore,
        analytics: AnalyticsSink,
        pixels: PixelTracker,
        runner: BackgroundRunner,
    ) -> None:
        self._gates = gates
        self._submissions = submissions
        self._analytics = analytics
        self._pixels = pixels
        self._runner = runner

    async def redeem(
        self,
        token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RedeemResult:
        now = now or utc_now()

        if not DownloadToken.is_well_formed(token):
            raise InvalidTokenError()
        submission = await self._submissions.find_by_download_token(token)
        if submission is None:
            raise InvalidTokenError()

        state = submission.token_state(now)
        if state == DownloadTokenState.NONE:
            raise InvalidTokenError()
        if state == DownloadTokenState.EXPIRED:
            raise ExpiredTokenError()
        if state == DownloadTokenState.REDEEMED:
            raise TokenAlreadyUsedError()

        gate = await self._gates.find_for_verification(submission.gate_id)
        if gate is None:
            raise InvalidTokenError("Download gate not found")
        if not gate.active:
            raise GateInactiveError()
        if gate.is_expired(now):
            raise GateExpiredError()

        if not await self._submissions.mark_download_complete(submission.id, token, now):
            log.warning("download_redeem_race_lost", submission_id=submission.id)
            raise TokenAlreadyUsedError()

        if not await self._record_download(gate, submission, token, now):
            raise DownloadNotRecordedError()

        log.info(
            "download_redeemed",
            submission_id=submission.id,
            gate_id=gate.id,
            ip=hash_ip(ip_address),
        )
        self._dispatch_tracking(gate, submission, ip_address, user_agent)
        return RedeemResult(success=True, file_url=gate.file_url)

    async def _record_download(
        self, gate: GateDoc, submission: SubmissionDoc, token: str, completed_at: datetime
    ) -> bool:
        try:
            if await self._gates.increment_download_count(gate.id):
                return True
        except Exception as e:
            log.error(
                "download_count_increment_failed",
                gate_id=gate.id,
                error=str(e),
                error_type=type(e).__name__,
            )

        reverted = await self._submissions.revert_download_complete(
            submission.id, token, completed_at
        )
        log.error(
            "download_not_recorded",
            gate_id=gate.id,
            submission_id=submission.id,
            completion_reverted=reverted,
        )
        return False

    def _dispatch_tracking(
        self,
        gate: GateDoc,
        submission: SubmissionDoc,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> None:
        event = AnalyticsEventDoc(
            gate_id=gate.id,
            event_type=AnalyticsEventType.DOWNLOAD,
            submission_id=submission.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._runner.spawn(
            "download_analytics", lambda: self._analytics.track(event), gate_id=gate.id
        )
        if gate.pixel_config and gate.pixel_config.enabled_platforms():
            self._runner.spawn(
                "download_pixel",
                lambda: self._pixels.track(
                    gate,
                    PixelEvent.CONVERSION,
                    email=submission.email,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    event_id=event.id,
                ),
                gate_id=gate.id,
            )
