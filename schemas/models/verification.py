"""
Verification flags embedded in a submission.

Each flag is a boolean plus the timestamp of its first transition to true.
flag_transition() is the only transition: false→true, never back. It is
applied in memory by VerificationStatus.mark() and as a MongoDB $set by the
submission repository, and re-marking an already-true flag leaves its
timestamp untouched.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict


class VerificationFlag(str, Enum):
    EMAIL = "email"
    REPOST = "repost"
    FOLLOW = "follow"
    PLATFORM_CONNECT = "platform_connect"
    PROFILE_CLICK = "profile_click"


# Field names on VerificationStatus, also used as MongoDB sub-document keys.
FLAG_FIELDS: dict[VerificationFlag, str] = {
    VerificationFlag.EMAIL: "email_verified",
    VerificationFlag.REPOST: "repost_verified",
    VerificationFlag.FOLLOW: "follow_verified",
    VerificationFlag.PLATFORM_CONNECT: "platform_connected",
    VerificationFlag.PROFILE_CLICK: "profile_click_tracked",
}

# User-facing message when a required flag is still false.
REQUIREMENT_MESSAGES: dict[VerificationFlag, str] = {
    VerificationFlag.EMAIL: "Email verification required",
    VerificationFlag.REPOST: "SoundCloud repost verification required",
    VerificationFlag.FOLLOW: "SoundCloud follow verification required",
    VerificationFlag.PLATFORM_CONNECT: "Platform connection required",
    VerificationFlag.PROFILE_CLICK: "Profile visit required",
}


def flag_field(flag: VerificationFlag) -> str:
    return FLAG_FIELDS[flag]


def flag_timestamp_field(flag: VerificationFlag) -> str:
    return f"{FLAG_FIELDS[flag]}_at"


def flag_transition(flag: VerificationFlag, now: datetime) -> dict[str, Any]:
    """Field values written when *flag* flips to true."""
    return {flag_field(flag): True, flag_timestamp_field(flag): now}


class VerificationStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email_verified: bool = False
    email_verified_at: Optional[datetime] = None
    repost_verified: bool = False
    repost_verified_at: Optional[datetime] = None
    follow_verified: bool = False
    follow_verified_at: Optional[datetime] = None
    platform_connected: bool = False
    platform_connected_at: Optional[datetime] = None
    profile_click_tracked: bool = False
    profile_click_tracked_at: Optional[datetime] = None

    def is_satisfied(self, flag: VerificationFlag) -> bool:
        return bool(getattr(self, flag_field(flag)))

    def mark(self, flags: Iterable[VerificationFlag], now: datetime) -> list[VerificationFlag]:
        """Flip each of *flags* to true; return the ones that actually changed."""
        changed: list[VerificationFlag] = []
        for flag in flags:
            if self.is_satisfied(flag):
                continue
            for name, value in flag_transition(flag, now).items():
                setattr(self, name, value)
            changed.append(flag)
        return changed

    def unmet(self, required: Iterable[VerificationFlag]) -> list[VerificationFlag]:
        """Required flags still false, in the order given."""
        return [flag for flag in required if not self.is_satisfied(flag)]
