"""
Download token issuance.

issue() is idempotent while a token is live: it returns the stored token
unchanged instead of minting another. A submission that already downloaded
never gets a new token. Otherwise a token is minted only once the gate is
usable, every required verification flag is set and the gate's download
cap (if any) still has room.

Unmet conditions are expected outcomes, not errors: they come back as a
TokenIssueResult naming exactly what is missing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from repositories.protocol import GateStore, SubmissionStore
from schemas.models.download_token import DownloadToken
from schemas.models.verification import REQUIREMENT_MESSAGES
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)


class TokenIssueFailure(str, Enum):
    SUBMISSION_NOT_FOUND = "submission_not_found"
    ALREADY_DOWNLOADED = "already_downloaded"
    GATE_NOT_FOUND = "gate_not_found"
    GATE_INACTIVE = "gate_inactive"
    GATE_EXPIRED = "gate_expired"
    VERIFICATION_INCOMPLETE = "verification_incomplete"
    MAX_DOWNLOADS_REACHED = "max_downloads_reached"


@dataclass(frozen=True)
class TokenIssueResult:
    success: bool
    token: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None
    reason: Optional[TokenIssueFailure] = None

    @classmethod
    def issued(cls, token: DownloadToken) -> "TokenIssueResult":
        return cls(success=True, token=token.value, expires_at=token.expires_at)

    @classmethod
    def failed(cls, reason: TokenIssueFailure, error: str) -> "TokenIssueResult":
        return cls(success=False, reason=reason, error=error)


class DownloadTokenService:
    def __init__(
        self,
        gates: GateStore,
        submissions: SubmissionStore,
        *,
        token_ttl_seconds: int = 86400,
    ) -> None:
        self._gates = gates
        self._submissions = submissions
        self._token_ttl_seconds = token_ttl_seconds

    async def issue(
        self,
        submission_id: str,
        gate_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TokenIssueResult:
        """Return the live token or mint a new one.

        When *gate_id* is given the submission must belong to that gate.
        """
        now = now or utc_now()

        submission = await self._submissions.find_by_id(submission_id)
        if submission is None or (gate_id is not None and submission.gate_id != gate_id):
            return TokenIssueResult.failed(
                TokenIssueFailure.SUBMISSION_NOT_FOUND, "Submission not found"
            )

        existing = submission.live_token(now)
        if existing is not None:
            return TokenIssueResult.issued(existing)

        if submission.download_completed:
            return TokenIssueResult.failed(
                TokenIssueFailure.ALREADY_DOWNLOADED, "This download was already completed"
            )

        gate = await self._gates.find_for_verification(submission.gate_id)
        if gate is None:
            return TokenIssueResult.failed(
                TokenIssueFailure.GATE_NOT_FOUND, "Download gate not found"
            )
        if not gate.active:
            return TokenIssueResult.failed(
                TokenIssueFailure.GATE_INACTIVE, "This download gate is no longer active"
            )
        if gate.is_expired(now):
            return TokenIssueResult.failed(
                TokenIssueFailure.GATE_EXPIRED, "This download gate has expired"
            )

        unmet = submission.verification.unmet(gate.required_flags)
        if unmet:
            log.info(
                "download_token_verification_incomplete",
                submission_id=submission_id,
                unmet=[flag.value for flag in unmet],
            )
            return TokenIssueResult.failed(
                TokenIssueFailure.VERIFICATION_INCOMPLETE, REQUIREMENT_MESSAGES[unmet[0]]
            )

        if gate.max_downloads is not None:
            completed = await self._submissions.get_download_count_for_gate(gate.id)
            if gate.download_cap_reached(completed):
                return TokenIssueResult.failed(
                    TokenIssueFailure.MAX_DOWNLOADS_REACHED, "Maximum download limit reached"
                )

        token = DownloadToken.generate(now, self._token_ttl_seconds)
        await self._submissions.set_download_token(submission_id, token.value, token.expires_at)

        log.info(
            "download_token_issued",
            submission_id=submission_id,
            gate_id=gate.id,
            expires_at=token.expires_at.isoformat(),
        )
        return TokenIssueResult.issued(token)
