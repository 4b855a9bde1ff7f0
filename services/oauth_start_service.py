"""
Starts a platform authorization for one (gate, submission) pair.

Creates a single-use OAuthState carrying a fresh CSRF token and PKCE
verifier, then returns the URL the visitor is redirected to.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from errors import NotFoundError, ServiceUnavailableError, ValidationError
from infrastructure.social.protocol import SocialPlatformClient
from repositories.protocol import OAuthStateStore, SubmissionStore
from schemas.models.oauth_state import OAuthProvider, OAuthStateDoc
from shared.datetime_utils import expires_in, utc_now
from shared.generators import generate_state_token
from shared.logging import get_logger

log = get_logger(__name__)

MAX_COMMENT_LENGTH = 500


def normalize_comment(text: Optional[str]) -> Optional[str]:
    """Trim *text*; blank becomes None. Raises ValidationError past the length limit."""
    if text is None:
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    if len(trimmed) > MAX_COMMENT_LENGTH:
        raise ValidationError(
            f"Comment must be {MAX_COMMENT_LENGTH} characters or fewer", field="comment"
        )
    return trimmed


class OAuthStartService:
    def __init__(
        self,
        client: SocialPlatformClient,
        states: OAuthStateStore,
        submissions: SubmissionStore,
        *,
        state_ttl_seconds: int = 900,
        provider: OAuthProvider = OAuthProvider.SOUNDCLOUD,
    ) -> None:
        self._client = client
        self._states = states
        self._submissions = submissions
        self._state_ttl_seconds = state_ttl_seconds
        self._provider = provider

    async def start(
        self,
        submission_id: str,
        gate_id: str,
        redirect_uri: str,
        comment_text: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """Persist a pending state and return the authorization URL."""
        if not self._client.is_configured:
            log.error("oauth_not_configured", provider=self._provider.value)
            raise ServiceUnavailableError("SoundCloud authentication is not configured")

        comment = normalize_comment(comment_text)

        submission = await self._submissions.find_by_id(submission_id)
        if submission is None or submission.gate_id != gate_id:
            raise NotFoundError("Submission not found for this gate", field="submission_id")

        now = now or utc_now()
        pkce = self._client.generate_pkce()
        state = OAuthStateDoc(
            state_token=generate_state_token(),
            provider=self._provider,
            submission_id=submission_id,
            gate_id=gate_id,
            code_verifier=pkce.verifier,
            comment_text=comment,
            expires_at=expires_in(self._state_ttl_seconds, now=now),
            created_at=now,
        )
        await self._states.create(state)

        log.info(
            "oauth_state_created",
            provider=self._provider.value,
            gate_id=gate_id,
            submission_id=submission_id,
            has_comment=comment is not None,
        )
        return self._client.build_authorization_url(
            state.state_token, redirect_uri, pkce.challenge
        )
