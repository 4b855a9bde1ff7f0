"""
OAuth state document model.

  OAuthStateDoc → oauth-states

One pending authorization round-trip. The record is single-use:
``used`` flips false→true once (OAuthStateRepository.mark_used) and never
reverts. Expired rows are swept by a TTL index, never deleted inline.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import is_past, utc_now


class OAuthProvider(str, Enum):
    SOUNDCLOUD = "soundcloud"
    SPOTIFY = "spotify"


class OAuthStateStatus(str, Enum):
    PENDING = "pending"
    CONSUMED = "consumed"
    EXPIRED = "expired"


class OAuthStateDoc(MongoBaseModel):
    state_token: str
    provider: OAuthProvider
    submission_id: str
    gate_id: str
    code_verifier: Optional[str] = None
    comment_text: Optional[str] = None
    expires_at: datetime
    used: bool = False
    used_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    def status(self, now: Optional[datetime] = None) -> OAuthStateStatus:
        """Current state; a consumed record reports CONSUMED even once expired."""
        if self.used:
            return OAuthStateStatus.CONSUMED
        if is_past(self.expires_at, now=now):
            return OAuthStateStatus.EXPIRED
        return OAuthStateStatus.PENDING
