"""
OAuth callback handling: the state machine guarding the code exchange.

A state record is checked in a fixed order (present, unused, unexpired,
right provider, PKCE verifier stored) and then consumed with an atomic
conditional update before the code is exchanged. A rejected or failed
callback always leaves the record consumed, so the same ``state`` can never
be replayed.

Only the code exchange and the profile fetch may fail the callback; every
later step is best-effort.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from infrastructure.social.protocol import PlatformProfile, SocialPlatformClient
from repositories.protocol import GateStore, OAuthStateStore, SubmissionStore
from schemas.models.oauth_state import OAuthProvider, OAuthStateDoc, OAuthStateStatus
from schemas.models.verification import VerificationFlag
from services.side_effects import SideEffectOrchestrator
from shared.best_effort import run_best_effort
from shared.datetime_utils import utc_now
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)

MISSING_PARAMS = "Missing authorization code or state"
INVALID_STATE = "Invalid state token"
STATE_USED = "State token already used"
STATE_EXPIRED = "State token expired"
INVALID_PROVIDER = "Invalid OAuth provider"
MISSING_PKCE = "Invalid authorization request (missing PKCE)"
AUTHORIZATION_DENIED = "SoundCloud authorization was cancelled"
GATE_NOT_FOUND = "Gate not found"
GENERIC_FAILURE = "Failed to complete SoundCloud authentication"


@dataclass(frozen=True)
class OAuthCallbackResult:
    success: bool
    gate_slug: Optional[str] = None
    buy_link_updated: bool = False
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str, gate_slug: Optional[str] = None) -> "OAuthCallbackResult":
        return cls(success=False, error=error, gate_slug=gate_slug)


class OAuthCallbackService:
    def __init__(
        self,
        client: SocialPlatformClient,
        states: OAuthStateStore,
        gates: GateStore,
        submissions: SubmissionStore,
        orchestrator: SideEffectOrchestrator,
        *,
        provider: OAuthProvider = OAuthProvider.SOUNDCLOUD,
        timeout: Optional[float] = 5.0,
    ) -> None:
        self._client = client
        self._states = states
        self._gates = gates
        self._submissions = submissions
        self._orchestrator = orchestrator
        self._provider = provider
        self._timeout = timeout

    async def handle(
        self,
        code: Optional[str],
        state: Optional[str],
        redirect_uri: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OAuthCallbackResult:
        if not code or not state:
            return OAuthCallbackResult.failed(MISSING_PARAMS)

        record: Optional[OAuthStateDoc] = None
        try:
            record = await self._states.find_by_state_token(state)
            if record is None:
                log.warning(
                    "oauth_state_not_found", ip=hash_ip(ip_address), user_agent=user_agent
                )
                return OAuthCallbackResult.failed(INVALID_STATE)

            now = now or utc_now()
            status = record.status(now)
            if status == OAuthStateStatus.CONSUMED:
                log.warning(
                    "oauth_state_replayed",
                    state_id=record.id,
                    ip=hash_ip(ip_address),
                    user_agent=user_agent,
                )
                return OAuthCallbackResult.failed(STATE_USED)
            if status == OAuthStateStatus.EXPIRED:
                return await self._reject(record, STATE_EXPIRED)
            if record.provider != self._provider:
                return await self._reject(record, INVALID_PROVIDER)
            if not record.code_verifier:
                return await self._reject(record, MISSING_PKCE)

            if not await self._states.mark_used(record.id, now):
                log.warning("oauth_state_claim_lost", state_id=record.id)
                return OAuthCallbackResult.failed(STATE_USED)

            return await self._complete(record, code, redirect_uri)
        except Exception as e:
            log.error(
                "oauth_callback_failed",
                state_id=record.id if record else None,
                error=str(e),
                error_type=type(e).__name__,
            )
            if record is not None:
                await self._consume(record)
            return OAuthCallbackResult.failed(GENERIC_FAILURE)

    async def deny(
        self,
        state: Optional[str],
        error: str,
        description: Optional[str] = None,
        ip_address: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OAuthCallbackResult:
        """The visitor cancelled on the consent page: consume the named state."""
        log.warning(
            "soundcloud_authorization_denied",
            error=error,
            description=description,
            ip=hash_ip(ip_address),
        )
        if not state:
            return OAuthCallbackResult.failed(AUTHORIZATION_DENIED)

        try:
            record = await self._states.find_by_state_token(state)
        except Exception as e:
            log.error(
                "oauth_state_lookup_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return OAuthCallbackResult.failed(AUTHORIZATION_DENIED)

        if record is not None and record.status(now or utc_now()) != OAuthStateStatus.CONSUMED:
            await self._consume(record)
        return OAuthCallbackResult.failed(AUTHORIZATION_DENIED)

    async def _complete(
        self,
        record: OAuthStateDoc,
        code: str,
        redirect_uri: str,
    ) -> OAuthCallbackResult:
        gate = await self._gates.find_for_verification(record.gate_id)
        if gate is None:
            log.warning("oauth_callback_gate_missing", gate_id=record.gate_id)
            return OAuthCallbackResult.failed(GATE_NOT_FOUND)

        try:
            tokens = await self._client.exchange_code(code, redirect_uri, record.code_verifier)
            profile = await self._client.get_profile(tokens.access_token)
        except Exception as e:
            log.error(
                "oauth_platform_exchange_failed",
                state_id=record.id,
                gate_id=gate.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return OAuthCallbackResult.failed(GENERIC_FAILURE, gate_slug=gate.slug)

        await run_best_effort(
            "platform_profile_save",
            lambda: self._save_profile(record.submission_id, profile),
            timeout=self._timeout,
            submission_id=record.submission_id,
        )

        report = await self._orchestrator.run(
            tokens.access_token, gate, record.submission_id, record.comment_text
        )

        log.info(
            "oauth_callback_completed",
            provider=record.provider.value,
            gate_id=gate.id,
            submission_id=record.submission_id,
            platform_user_id=profile.user_id,
            buy_link_updated=report.buy_link_updated,
        )
        return OAuthCallbackResult(
            success=True, gate_slug=gate.slug, buy_link_updated=report.buy_link_updated
        )

    async def _save_profile(self, submission_id: str, profile: PlatformProfile) -> None:
        await self._submissions.save_platform_profile(
            submission_id,
            user_id=profile.user_id,
            username=profile.username,
            profile_url=profile.profile_url,
            avatar_url=profile.avatar_url,
        )
        await self._submissions.update_verification_flags(
            submission_id, [VerificationFlag.PLATFORM_CONNECT], utc_now()
        )

    async def _reject(self, record: OAuthStateDoc, reason: str) -> OAuthCallbackResult:
        log.warning("oauth_state_rejected", state_id=record.id, reason=reason)
        await self._consume(record)
        return OAuthCallbackResult.failed(reason)

    async def _consume(self, record: OAuthStateDoc) -> None:
        try:
            await self._states.mark_used(record.id, utc_now())
        except Exception as e:
            log.error(
                "oauth_state_mark_used_failed",
                state_id=record.id,
                error=str(e),
                error_type=type(e).__name__,
            )
