"""
Download submission document model.

  SubmissionDoc → download-submissions

One visitor's attempt at a gate. Holds the embedded VerificationStatus,
the connected platform profile and the download token lifecycle fields.
``download_completed`` is terminal: once true it is never reset.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel
from schemas.models.download_token import DownloadToken, DownloadTokenState
from schemas.models.verification import VerificationStatus
from shared.datetime_utils import utc_now


class SubmissionDoc(MongoBaseModel):
    gate_id: str
    email: str
    first_name: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    consent_marketing: bool = False

    verification: VerificationStatus = Field(default_factory=VerificationStatus)

    soundcloud_user_id: Optional[str] = None
    soundcloud_username: Optional[str] = None
    soundcloud_profile_url: Optional[str] = None
    soundcloud_avatar_url: Optional[str] = None

    download_token: Optional[str] = None
    download_token_expires_at: Optional[datetime] = None
    download_completed: bool = False
    download_completed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def token(self) -> Optional[DownloadToken]:
        return DownloadToken.from_existing(self.download_token, self.download_token_expires_at)

    def token_state(self, now: Optional[datetime] = None) -> DownloadTokenState:
        """Lifecycle of the stored token. Expiry is reported ahead of redemption."""
        token = self.token
        if token is None:
            return DownloadTokenState.NONE
        if token.is_expired(now):
            return DownloadTokenState.EXPIRED
        if self.download_completed:
            return DownloadTokenState.REDEEMED
        return DownloadTokenState.ISSUED

    def live_token(self, now: Optional[datetime] = None) -> Optional[DownloadToken]:
        """The stored token while it is still within its validity window."""
        token = self.token
        if token is None or token.is_expired(now):
            return None
        return token
