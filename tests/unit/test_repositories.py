"""
Unit tests for the MongoDB repositories.

The collection is an AsyncMock; the tests pin the filters that make each
transition conditional, since that is what keeps concurrent requests safe.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import NOW, make_gate, make_state, make_submission
from repositories.analytics_repository import AnalyticsRepository
from repositories.gate_repository import GateRepository
from repositories.indexes import ensure_indexes
from repositories.oauth_state_repository import OAuthStateRepository
from repositories.submission_repository import SubmissionRepository
from schemas.models.analytics import AnalyticsEventDoc, AnalyticsEventType
from schemas.models.verification import VerificationFlag

TOKEN = "cd" * 32


def _collection(matched: int = 1, modified: int = 1) -> MagicMock:
    col = MagicMock()
    col.find_one = AsyncMock(return_value=None)
    col.insert_one = AsyncMock()
    col.update_one = AsyncMock(
        return_value=SimpleNamespace(matched_count=matched, modified_count=modified)
    )
    col.count_documents = AsyncMock(return_value=0)
    return col


def _update_args(col: MagicMock) -> tuple[dict, dict]:
    args, _ = col.update_one.call_args
    return args[0], args[1]


# ---------------------------------------------------------------------------
# GateRepository
# ---------------------------------------------------------------------------


class TestGateRepository:
    async def test_find_for_verification_has_no_owner_filter(self):
        col = _collection()
        col.find_one.return_value = make_gate().to_mongo()

        gate = await GateRepository(col).find_for_verification("gate-1")

        col.find_one.assert_awaited_once_with({"_id": "gate-1"})
        assert gate.slug == "summer-mix"

    async def test_find_by_slug_missing_returns_none(self):
        col = _collection()
        assert await GateRepository(col).find_by_slug("nope") is None
        col.find_one.assert_awaited_once_with({"slug": "nope"})

    async def test_increment_download_count(self):
        col = _collection()
        assert await GateRepository(col).increment_download_count("gate-1") is True

        query, update = _update_args(col)
        assert query == {"_id": "gate-1"}
        assert update["$inc"] == {"download_count": 1}

    async def test_increment_unknown_gate(self):
        col = _collection(matched=0, modified=0)
        assert await GateRepository(col).increment_download_count("gone") is False


# ---------------------------------------------------------------------------
# SubmissionRepository
# ---------------------------------------------------------------------------


class TestSubmissionRepository:
    async def test_find_by_download_token(self):
        col = _collection()
        col.find_one.return_value = make_submission(download_token=TOKEN).to_mongo()

        sub = await SubmissionRepository(col).find_by_download_token(TOKEN)

        col.find_one.assert_awaited_once_with({"download_token": TOKEN})
        assert sub.id == "sub-1"

    async def test_update_verification_flags_is_conditional(self):
        col = _collection()
        changed = await SubmissionRepository(col).update_verification_flags(
            "sub-1", [VerificationFlag.REPOST], NOW
        )

        assert changed == [VerificationFlag.REPOST]
        query, update = _update_args(col)
        assert query == {"_id": "sub-1", "verification.repost_verified": {"$ne": True}}
        assert update["$set"]["verification.repost_verified"] is True
        assert update["$set"]["verification.repost_verified_at"] == NOW

    async def test_update_verification_flags_already_set(self):
        col = _collection(matched=0, modified=0)
        changed = await SubmissionRepository(col).update_verification_flags(
            "sub-1", [VerificationFlag.FOLLOW, VerificationFlag.PROFILE_CLICK], NOW
        )
        assert changed == []
        assert col.update_one.await_count == 2

    async def test_mark_download_complete_filter(self):
        col = _collection()
        assert await SubmissionRepository(col).mark_download_complete("sub-1", TOKEN, NOW)

        query, update = _update_args(col)
        assert query == {"_id": "sub-1", "download_token": TOKEN, "download_completed": False}
        assert update["$set"]["download_completed"] is True
        assert update["$set"]["download_completed_at"] == NOW

    async def test_mark_download_complete_lost_race(self):
        col = _collection(matched=0, modified=0)
        assert not await SubmissionRepository(col).mark_download_complete("sub-1", TOKEN, NOW)

    async def test_revert_matches_exact_completion(self):
        col = _collection()
        assert await SubmissionRepository(col).revert_download_complete("sub-1", TOKEN, NOW)

        query, update = _update_args(col)
        assert query["download_completed"] is True
        assert query["download_completed_at"] == NOW
        assert update["$set"]["download_completed"] is False

    async def test_set_download_token(self):
        col = _collection()
        expires = NOW
        assert await SubmissionRepository(col).set_download_token("sub-1", TOKEN, expires)

        query, update = _update_args(col)
        assert query == {"_id": "sub-1"}
        assert update["$set"]["download_token"] == TOKEN
        assert update["$set"]["download_token_expires_at"] == expires

    async def test_download_count_counts_completed(self):
        col = _collection()
        col.count_documents.return_value = 3

        assert await SubmissionRepository(col).get_download_count_for_gate("gate-1") == 3
        col.count_documents.assert_awaited_once_with(
            {"gate_id": "gate-1", "download_completed": True}
        )


# ---------------------------------------------------------------------------
# OAuthStateRepository
# ---------------------------------------------------------------------------


class TestOAuthStateRepository:
    async def test_create_inserts_with_id(self):
        col = _collection()
        state = make_state()

        await OAuthStateRepository(col).create(state)

        inserted = col.insert_one.call_args.args[0]
        assert inserted["_id"] == "state-1"
        assert inserted["used"] is False

    @pytest.mark.parametrize("modified, expected", [(1, True), (0, False)], ids=["won", "lost"])
    async def test_mark_used(self, modified, expected):
        col = _collection(modified=modified)
        assert await OAuthStateRepository(col).mark_used("state-1", NOW) is expected

        query, update = _update_args(col)
        assert query == {"_id": "state-1", "used": False}
        assert update == {"$set": {"used": True, "used_at": NOW}}


async def test_analytics_track_returns_event_id():
    col = _collection()
    event = AnalyticsEventDoc(gate_id="gate-1", event_type=AnalyticsEventType.DOWNLOAD)

    assert await AnalyticsRepository(col).track(event) == event.id
    col.insert_one.assert_awaited_once()


async def test_ensure_indexes():
    collections: dict[str, MagicMock] = {}

    def _get(name):
        return collections.setdefault(name, MagicMock(create_index=AsyncMock()))

    db = MagicMock()
    db.__getitem__.side_effect = _get

    await ensure_indexes(db, oauth_state_retention_seconds=3600)

    assert set(collections) == {
        "download-gates",
        "download-submissions",
        "oauth-states",
        "download-analytics",
    }
    token_index = collections["download-submissions"].create_index.call_args_list[1]
    assert token_index.kwargs["unique"] is True
    assert "partialFilterExpression" in token_index.kwargs
    ttl_index = collections["oauth-states"].create_index.call_args_list[1]
    assert ttl_index.kwargs == {"expireAfterSeconds": 3600}
