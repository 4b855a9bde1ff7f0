"""Shared plumbing for the MongoDB repositories."""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pymongo.asynchronous.collection import AsyncCollection

from schemas.models.base import MongoBaseModel

ModelT = TypeVar("ModelT", bound=MongoBaseModel)


class BaseRepository(Generic[ModelT]):
    """One repository per collection; documents are validated on the way out."""

    collection_name: str = ""
    model: type[ModelT]

    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def find_by_id(self, doc_id: str) -> Optional[ModelT]:
        return self.model.from_mongo(await self._col.find_one({"_id": doc_id}))

    async def _find_one(self, query: dict[str, Any]) -> Optional[ModelT]:
        return self.model.from_mongo(await self._col.find_one(query))

    async def insert(self, doc: ModelT) -> ModelT:
        await self._col.insert_one(doc.to_mongo())
        return doc
