"""
Index bootstrap, run once from the application lifespan.

create_index() is idempotent, so running this on every boot is safe.
"""

from __future__ import annotations

from pymongo import ASCENDING
from pymongo.asynchronous.database import AsyncDatabase

from repositories.analytics_repository import AnalyticsRepository
from repositories.gate_repository import GateRepository
from repositories.oauth_state_repository import OAuthStateRepository
from repositories.submission_repository import SubmissionRepository
from shared.logging import get_logger

log = get_logger(__name__)


async def ensure_indexes(db: AsyncDatabase, oauth_state_retention_seconds: int = 86400) -> None:
    gates = db[GateRepository.collection_name]
    await gates.create_index([("slug", ASCENDING)], unique=True)

    submissions = db[SubmissionRepository.collection_name]
    await submissions.create_index([("gate_id", ASCENDING)])
    # Unset tokens are stored as null, so uniqueness only applies to real tokens
    await submissions.create_index(
        [("download_token", ASCENDING)],
        unique=True,
        partialFilterExpression={"download_token": {"$type": "string"}},
    )

    states = db[OAuthStateRepository.collection_name]
    await states.create_index([("state_token", ASCENDING)], unique=True)
    # Expired state rows are swept by MongoDB after the retention window
    await states.create_index(
        [("expires_at", ASCENDING)], expireAfterSeconds=oauth_state_retention_seconds
    )

    analytics = db[AnalyticsRepository.collection_name]
    await analytics.create_index([("gate_id", ASCENDING), ("event_type", ASCENDING)])

    log.info("mongodb_indexes_ensured")
