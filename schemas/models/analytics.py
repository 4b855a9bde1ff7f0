"""
Download analytics event model.

  AnalyticsEventDoc → download-analytics
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import utc_now


class AnalyticsEventType(str, Enum):
    VIEW = "view"
    SUBMIT = "submit"
    DOWNLOAD = "download"
    PROFILE_CLICK = "profile_click"


class AnalyticsEventDoc(MongoBaseModel):
    gate_id: str
    event_type: AnalyticsEventType
    submission_id: Optional[str] = None
    session_id: Optional[str] = None
    referrer: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    country: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
