"""
Request DTOs for the public gate endpoints.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class DownloadTokenRequest(BaseModel):
    """Request body for POST /api/gate/{slug}/download-token.

    Accepts ``submissionId`` as an alias — the gate page sends camelCase.
    """

    model_config = ConfigDict(populate_by_name=True)

    submission_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("submission_id", "submissionId"),
    )

