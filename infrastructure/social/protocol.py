"""SocialPlatformClient protocol — services depend on this, not the concrete implementation.

Critical-path calls (exchange_code, get_profile) raise SocialPlatformError.
Write actions never raise for an API refusal; they report it through
OperationResult so the orchestrator can treat them as best-effort.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


class SocialPlatformError(Exception):
    """The platform refused or failed a critical-path request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class PKCEPair:
    verifier: str
    challenge: str


@dataclass(frozen=True)
class TokenResponse:
    access_token: str
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


@dataclass(frozen=True)
class PlatformProfile:
    user_id: str
    username: str
    profile_url: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class OperationResult:
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class TrackInfo:
    track_id: str
    duration_ms: int
    title: Optional[str] = None


class SocialPlatformClient(Protocol):
    @property
    def is_configured(self) -> bool: ...

    def generate_pkce(self) -> PKCEPair: ...

    def build_authorization_url(self, state: str, redirect_uri: str, challenge: str) -> str: ...

    async def exchange_code(self, code: str, redirect_uri: str, verifier: str) -> TokenResponse: ...

    async def get_profile(self, access_token: str) -> PlatformProfile: ...

    async def create_repost(self, access_token: str, track_id: str) -> OperationResult: ...

    async def create_favorite(self, access_token: str, track_id: str) -> OperationResult: ...

    async def create_follow(self, access_token: str, user_id: str) -> OperationResult: ...

    async def post_comment(
        self, access_token: str, track_id: str, text: str, timestamp: Optional[int] = None
    ) -> str: ...

    async def get_track_info(self, access_token: str, track_id: str) -> TrackInfo: ...

    async def update_purchase_link(
        self, access_token: str, track_id: str, url: str, title: Optional[str] = None
    ) -> OperationResult: ...
