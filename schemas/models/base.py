"""
Base model for all MongoDB document models.

Documents are keyed by UUID4 strings rather than BSON ObjectIds so that ids
can travel through URLs and OAuth state records unchanged.
MongoBaseModel provides to_mongo() / from_mongo() for round-tripping between
Python objects and raw MongoDB dicts.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.generators import generate_id


class MongoBaseModel(BaseModel):
    """
    Base for all document models.

    Stores the MongoDB _id as `id` (UUID4 string, generated when omitted).
    Subclasses add collection-specific fields on top.

    to_mongo()  — converts model → dict suitable for pymongo insert/update
    from_mongo() — converts raw pymongo dict → model instance (returns None
                    gracefully when passed None)
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: str = Field(default_factory=generate_id, alias="_id")

    def to_mongo(self) -> dict:
        """Return a dict ready for MongoDB insertion (``id`` → ``_id``)."""
        return self.model_dump(by_alias=True, exclude_none=False)

    @classmethod
    def from_mongo(cls, data: Optional[dict]):
        """Build a model instance from a raw MongoDB document dict.

        Returns None when data is None (e.g. find_one returns None).
        Missing optional fields are filled with their defaults.
        """
        if data is None:
            return None
        return cls.model_validate(data)
