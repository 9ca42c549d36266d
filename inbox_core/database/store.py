"""
Persistence accessor used by the assignment and synchronization services.

Services receive a ``Store`` in their constructor instead of reaching for the
global Motor client, so tests can hand them an in-memory implementation.
Queries use MongoDB filter syntax. A filter of ``{"field": None}`` matches
documents where the field is null or missing, which makes
``update_one(..., {"id": x, "field": None}, {"field": v})`` an atomic
"set where currently null" write.
"""
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from .connection import get_database


SortSpec = Sequence[Tuple[str, int]]


class Store(Protocol):
    """Minimal async document store contract."""

    async def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    async def find(
        self,
        collection: str,
        query: Dict[str, Any],
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]: ...

    async def count(self, collection: str, query: Dict[str, Any]) -> int: ...

    async def update_one(self, collection: str, query: Dict[str, Any], values: Dict[str, Any]) -> bool: ...

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> Any: ...


class MongoStore:
    """Motor implementation of :class:`Store`."""

    def __init__(self, database: Optional[AsyncIOMotorDatabase] = None) -> None:
        self._db = database if database is not None else get_database()

    async def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._db[collection].find_one(query)

    async def find(
        self,
        collection: str,
        query: Dict[str, Any],
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self._db[collection].find(query)
        if sort:
            cursor = cursor.sort(list(sort))
        return [document async for document in cursor]

    async def count(self, collection: str, query: Dict[str, Any]) -> int:
        return await self._db[collection].count_documents(query)

    async def update_one(self, collection: str, query: Dict[str, Any], values: Dict[str, Any]) -> bool:
        result = await self._db[collection].update_one(query, {"$set": values})
        return result.matched_count > 0

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> Any:
        result = await self._db[collection].insert_one(document)
        return result.inserted_id
