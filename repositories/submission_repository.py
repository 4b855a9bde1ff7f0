"""
Submission repository.

Every mutation is a single conditional update so concurrent requests cannot
double-apply a transition:

- verification flags: filter ``verification.<flag> != true``; the flag's
  timestamp is written only by the update that flips it.
- download completion: filter ``download_completed == false`` and the exact
  token, so exactly one of N concurrent redemptions matches.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from repositories.base import BaseRepository
from schemas.models.submission import SubmissionDoc
from schemas.models.verification import VerificationFlag, flag_field, flag_transition
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)


class SubmissionRepository(BaseRepository[SubmissionDoc]):
    collection_name = "download-submissions"
    model = SubmissionDoc

    async def find_by_download_token(self, token: str) -> Optional[SubmissionDoc]:
        return await self._find_one({"download_token": token})

    async def update_verification_flags(
        self, submission_id: str, flags: Iterable[VerificationFlag], now: datetime
    ) -> list[VerificationFlag]:
        """Flip each flag to true. Returns the flags this call actually changed."""
        changed: list[VerificationFlag] = []
        for flag in flags:
            updates = {
                f"verification.{name}": value
                for name, value in flag_transition(flag, now).items()
            }
            result = await self._col.update_one(
                {"_id": submission_id, f"verification.{flag_field(flag)}": {"$ne": True}},
                {"$set": {**updates, "updated_at": now}},
            )
            if result.modified_count == 1:
                changed.append(flag)
        if changed:
            log.info(
                "verification_flags_updated",
                submission_id=submission_id,
                flags=[f.value for f in changed],
            )
        return changed

    async def save_platform_profile(
        self,
        submission_id: str,
        *,
        user_id: str,
        username: str,
        profile_url: Optional[str],
        avatar_url: Optional[str],
    ) -> bool:
        result = await self._col.update_one(
            {"_id": submission_id},
            {
                "$set": {
                    "soundcloud_user_id": user_id,
                    "soundcloud_username": username,
                    "soundcloud_profile_url": profile_url,
                    "soundcloud_avatar_url": avatar_url,
                    "updated_at": utc_now(),
                }
            },
        )
        return result.matched_count == 1

    async def set_download_token(
        self, submission_id: str, token: str, expires_at: datetime
    ) -> bool:
        """Store the token; a concurrent issuance simply overwrites it (last write wins)."""
        result = await self._col.update_one(
            {"_id": submission_id},
            {
                "$set": {
                    "download_token": token,
                    "download_token_expires_at": expires_at,
                    "updated_at": utc_now(),
                }
            },
        )
        return result.matched_count == 1

    async def mark_download_complete(
        self, submission_id: str, token: str, now: datetime
    ) -> bool:
        """Conditionally flip download_completed. False means someone else won."""
        result = await self._col.update_one(
            {"_id": submission_id, "download_token": token, "download_completed": False},
            {
                "$set": {
                    "download_completed": True,
                    "download_completed_at": now,
                    "updated_at": now,
                }
            },
        )
        return result.modified_count == 1

    async def revert_download_complete(
        self, submission_id: str, token: str, completed_at: datetime
    ) -> bool:
        """Undo mark_download_complete() when the gate counter could not be incremented.

        Matches the exact completion timestamp so it can only undo the flip
        made by the same redemption.
        """
        result = await self._col.update_one(
            {
                "_id": submission_id,
                "download_token": token,
                "download_completed": True,
                "download_completed_at": completed_at,
            },
            {
                "$set": {
                    "download_completed": False,
                    "download_completed_at": None,
                    "updated_at": utc_now(),
                }
            },
        )
        return result.modified_count == 1

    async def get_download_count_for_gate(self, gate_id: str) -> int:
        return await self._col.count_documents(
            {"gate_id": gate_id, "download_completed": True}
        )
