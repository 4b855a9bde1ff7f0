"""
Download gate document model.

  GateDoc → download-gates

A gate is public once published: the verification pipeline reads it
without any owner context (see GateRepository.find_for_verification).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel
from schemas.models.pixel import PixelConfig
from schemas.models.verification import VerificationFlag
from shared.datetime_utils import is_past, utc_now


class GateDoc(MongoBaseModel):
    """
    Document model for the `download-gates` collection.

    download_count is the number of completed downloads; it is only ever
    changed by GateRepository.increment_download_count().
    """

    user_id: Optional[str] = None
    slug: str
    title: str
    artist_name: Optional[str] = None
    artwork_url: Optional[str] = None

    soundcloud_track_id: Optional[str] = None
    soundcloud_track_url: Optional[str] = None
    soundcloud_user_id: Optional[str] = None

    file_url: str

    require_email: bool = True
    require_soundcloud_repost: bool = False
    require_soundcloud_follow: bool = False
    require_platform_connect: bool = False
    require_profile_click: bool = False

    # Default comment posted on the track when the visitor did not write one
    comment_text: Optional[str] = None
    enable_buy_link: bool = False
    profile_url: Optional[str] = None
    pixel_config: Optional[PixelConfig] = None

    active: bool = True
    max_downloads: Optional[int] = None
    download_count: int = 0
    expires_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def track_id(self) -> Optional[str]:
        return self.soundcloud_track_id or None

    @property
    def target_user_id(self) -> Optional[str]:
        return self.soundcloud_user_id or None

    @property
    def required_flags(self) -> list[VerificationFlag]:
        """Flags a submission must satisfy, in the order they are reported."""
        wanted = [
            (self.require_email, VerificationFlag.EMAIL),
            (self.require_soundcloud_repost, VerificationFlag.REPOST),
            (self.require_soundcloud_follow, VerificationFlag.FOLLOW),
            (self.require_platform_connect, VerificationFlag.PLATFORM_CONNECT),
            (self.require_profile_click, VerificationFlag.PROFILE_CLICK),
        ]
        return [flag for required, flag in wanted if required]

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return is_past(self.expires_at, now=now)

    def download_cap_reached(self, count: Optional[int] = None) -> bool:
        """True when a cap is configured and *count* (default: stored count) is at or past it."""
        if self.max_downloads is None:
            return False
        current = self.download_count if count is None else count
        return current >= self.max_downloads
