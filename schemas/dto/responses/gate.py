"""
Response DTOs for the public gate endpoints.

DownloadTokenResponse — POST /api/gate/{slug}/download-token  (200)
ProfileClickResponse  — GET /api/gate/profile-click  (200)
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class DownloadTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    token: str
    expires_at: datetime
    download_url: str


class ProfileClickResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    profile_url: str
    already_tracked: bool
