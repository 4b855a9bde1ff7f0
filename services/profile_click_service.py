"""Profile-visit tracking: the visitor clicked through to the artist's profile."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from errors import NotFoundError, ValidationError
from repositories.protocol import AnalyticsSink, GateStore, SubmissionStore
from schemas.models.analytics import AnalyticsEventDoc, AnalyticsEventType
from schemas.models.verification import VerificationFlag
from shared.best_effort import BackgroundRunner
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ProfileClickResult:
    profile_url: str
    already_tracked: bool


class ProfileClickService:
    def __init__(
        self,
        gates: GateStore,
        submissions: SubmissionStore,
        analytics: AnalyticsSink,
        runner: BackgroundRunner,
    ) -> None:
        self._gates = gates
        self._submissions = submissions
        self._analytics = analytics
        self._runner = runner

    async def track(
        self,
        submission_id: str,
        gate_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ProfileClickResult:
        """Flip profile_click once and return the URL to send the visitor to."""
        submission = await self._submissions.find_by_id(submission_id)
        if submission is None:
            raise NotFoundError("Submission not found", field="submission_id")
        if submission.gate_id != gate_id:
            raise ValidationError("Invalid submission for this gate", field="gate_id")

        gate = await self._gates.find_for_verification(gate_id)
        if gate is None:
            raise NotFoundError("Download gate not found", field="gate_id")
        if not gate.profile_url:
            raise ValidationError("Profile URL not configured for this gate")

        already_tracked = submission.verification.is_satisfied(VerificationFlag.PROFILE_CLICK)
        if not already_tracked:
            changed = await self._submissions.update_verification_flags(
                submission_id, [VerificationFlag.PROFILE_CLICK], utc_now()
            )
            # A concurrent click may have flipped it first
            already_tracked = not changed
            if changed:
                event = AnalyticsEventDoc(
                    gate_id=gate_id,
                    event_type=AnalyticsEventType.PROFILE_CLICK,
                    submission_id=submission_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                self._runner.spawn(
                    "profile_click_analytics",
                    lambda: self._analytics.track(event),
                    gate_id=gate_id,
                )

        log.info(
            "profile_click_tracked",
            submission_id=submission_id,
            gate_id=gate_id,
            already_tracked=already_tracked,
        )
        return ProfileClickResult(profile_url=gate.profile_url, already_tracked=already_tracked)
