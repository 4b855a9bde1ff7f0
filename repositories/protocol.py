"""Repository protocols — services depend on these, not on pymongo collections."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from schemas.models.analytics import AnalyticsEventDoc
from schemas.models.gate import GateDoc
from schemas.models.oauth_state import OAuthStateDoc
from schemas.models.submission import SubmissionDoc
from schemas.models.verification import VerificationFlag


class GateStore(Protocol):
    async def find_for_verification(self, gate_id: str) -> Optional[GateDoc]: ...

    async def find_by_slug(self, slug: str) -> Optional[GateDoc]: ...

    async def increment_download_count(self, gate_id: str) -> bool: ...


class SubmissionStore(Protocol):
    async def find_by_id(self, submission_id: str) -> Optional[SubmissionDoc]: ...

    async def find_by_download_token(self, token: str) -> Optional[SubmissionDoc]: ...

    async def update_verification_flags(
        self, submission_id: str, flags: Iterable[VerificationFlag], now: datetime
    ) -> list[VerificationFlag]: ...

    async def save_platform_profile(
        self,
        submission_id: str,
        *,
        user_id: str,
        username: str,
        profile_url: Optional[str],
        avatar_url: Optional[str],
    ) -> bool: ...

    async def set_download_token(
        self, submission_id: str, token: str, expires_at: datetime
    ) -> bool: ...

    async def mark_download_complete(
        self, submission_id: str, token: str, now: datetime
    ) -> bool: ...

    async def revert_download_complete(
        self, submission_id: str, token: str, completed_at: datetime
    ) -> bool: ...

    async def get_download_count_for_gate(self, gate_id: str) -> int: ...


class OAuthStateStore(Protocol):
    async def create(self, state: OAuthStateDoc) -> OAuthStateDoc: ...

    async def find_by_state_token(self, state_token: str) -> Optional[OAuthStateDoc]: ...

    async def mark_used(self, state_id: str, now: datetime) -> bool: ...


class AnalyticsSink(Protocol):
    async def track(self, event: AnalyticsEventDoc) -> str: ...
