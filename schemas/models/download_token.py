"""
Download token value object.

A token is 32 random bytes rendered as 64 hex characters with an absolute
expiry. It is never stored on its own; SubmissionDoc carries the value and
expiry, and DownloadToken is rebuilt from them when needed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from shared.datetime_utils import ensure_utc, utc_now
from shared.generators import generate_download_token

_TOKEN_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class DownloadTokenState(str, Enum):
    NONE = "none"
    ISSUED = "issued"
    EXPIRED = "expired"
    REDEEMED = "redeemed"


@dataclass(frozen=True)
class DownloadToken:
    value: str
    expires_at: datetime

    @classmethod
    def generate(cls, now: Optional[datetime] = None, ttl_seconds: int = 86400) -> "DownloadToken":
        issued_at = now or utc_now()
        return cls(
            value=generate_download_token(),
            expires_at=issued_at + timedelta(seconds=ttl_seconds),
        )

    @classmethod
    def from_existing(
        cls, value: Optional[str], expires_at: Optional[datetime]
    ) -> Optional["DownloadToken"]:
        if not value or expires_at is None:
            return None
        return cls(value=value, expires_at=ensure_utc(expires_at))

    @staticmethod
    def is_well_formed(value: Optional[str]) -> bool:
        return bool(value) and _TOKEN_RE.match(value) is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at < (now or utc_now())
