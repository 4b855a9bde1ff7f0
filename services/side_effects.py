"""
Best-effort social actions run after a successful OAuth exchange.

Every action (repost, favorite, follow, comment, buy link) is attempted when
its precondition holds, independently of the others, under a per-action
timeout. A failure is a logged ActionResult, never an exception: the
visitor may proceed toward the download whatever happens here.

Only repost and follow are gate requirements, so only their success flips a
verification flag.
"""

from __future__ import annotations

import asyncio
import math
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from infrastructure.social.protocol import OperationResult, SocialPlatformClient
from repositories.protocol import SubmissionStore
from schemas.models.gate import GateDoc
from schemas.models.verification import VerificationFlag
from shared.best_effort import ActionResult, run_best_effort
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)

REPOST = "repost"
FAVORITE = "favorite"
FOLLOW = "follow"
COMMENT = "comment"
BUY_LINK = "buy_link"


def pick_comment_timestamp(
    duration_ms: Optional[int], rng: Optional[random.Random] = None
) -> Optional[int]:
    """Random position (ms) between 10% and 90% of the track, or None without a duration."""
    if not duration_ms or duration_ms <= 0:
        return None
    low = math.floor(duration_ms * 0.1)
    high = math.floor(duration_ms * 0.9)
    return (rng or random).randint(low, high)


def gate_page_url(app_url: str, slug: str) -> str:
    return f"{app_url.rstrip('/')}/gate/{slug}"


@dataclass(frozen=True)
class SideEffectReport:
    results: tuple[ActionResult, ...] = ()

    def succeeded(self, action: str) -> bool:
        return any(r.action == action and r.success for r in self.results)

    @property
    def buy_link_updated(self) -> bool:
        return self.succeeded(BUY_LINK)


class SideEffectOrchestrator:
    def __init__(
        self,
        client: SocialPlatformClient,
        submissions: SubmissionStore,
        *,
        app_url: str,
        buy_link_title: Optional[str] = None,
        timeout: Optional[float] = 5.0,
        duration_timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._client = client
        self._submissions = submissions
        self._app_url = app_url
        self._buy_link_title = buy_link_title
        self._timeout = timeout
        # The lookup must leave room for the comment post inside the action timeout
        if duration_timeout is None and timeout is not None:
            duration_timeout = timeout / 2
        self._duration_timeout = duration_timeout
        self._rng = rng

    async def run(
        self,
        access_token: str,
        gate: GateDoc,
        submission_id: str,
        comment_text: Optional[str] = None,
    ) -> SideEffectReport:
        track_id = gate.track_id
        target_user_id = gate.target_user_id
        comment = (comment_text or "").strip()

        planned: list[tuple[str, Callable[[], Awaitable[Any]]]] = []
        if track_id:
            planned.append(
                (REPOST, lambda: self._repost(access_token, track_id, submission_id))
            )
            planned.append(
                (FAVORITE, lambda: self._client.create_favorite(access_token, track_id))
            )
        if target_user_id:
            planned.append(
                (FOLLOW, lambda: self._follow(access_token, target_user_id, submission_id))
            )
        if track_id and comment:
            planned.append((COMMENT, lambda: self._comment(access_token, track_id, comment)))
        if track_id and gate.enable_buy_link:
            planned.append((BUY_LINK, lambda: self._buy_link(access_token, track_id, gate.slug)))

        results = await asyncio.gather(
            *(
                run_best_effort(
                    action,
                    factory,
                    timeout=self._timeout,
                    gate_id=gate.id,
                    submission_id=submission_id,
                )
                for action, factory in planned
            )
        )
        report = SideEffectReport(results=tuple(results))
        log.info(
            "side_effects_completed",
            gate_id=gate.id,
            submission_id=submission_id,
            succeeded=[r.action for r in report.results if r.success],
            failed=[r.action for r in report.results if not r.success],
        )
        return report

    async def _repost(
        self, access_token: str, track_id: str, submission_id: str
    ) -> OperationResult:
        result = await self._client.create_repost(access_token, track_id)
        if result.success:
            await self._submissions.update_verification_flags(
                submission_id, [VerificationFlag.REPOST], utc_now()
            )
        return result

    async def _follow(self, access_token: str, user_id: str, submission_id: str) -> OperationResult:
        result = await self._client.create_follow(access_token, user_id)
        if result.success:
            await self._submissions.update_verification_flags(
                submission_id, [VerificationFlag.FOLLOW], utc_now()
            )
        return result

    async def _comment(self, access_token: str, track_id: str, text: str) -> str:
        timestamp = await self._comment_timestamp(access_token, track_id)
        return await self._client.post_comment(access_token, track_id, text, timestamp)

    async def _comment_timestamp(self, access_token: str, track_id: str) -> Optional[int]:
        try:
            info = await asyncio.wait_for(
                self._client.get_track_info(access_token, track_id),
                timeout=self._duration_timeout,
            )
        except asyncio.TimeoutError:
            log.warning(
                "track_duration_lookup_timed_out",
                track_id=track_id,
                timeout=self._duration_timeout,
            )
            return None
        except Exception as e:
            log.warning(
                "track_duration_lookup_failed",
                track_id=track_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        return pick_comment_timestamp(info.duration_ms, self._rng)

    async def _buy_link(self, access_token: str, track_id: str, slug: str) -> OperationResult:
        return await self._client.update_purchase_link(
            access_token,
            track_id,
            gate_page_url(self._app_url, slug),
            self._buy_link_title,
        )
