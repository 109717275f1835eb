"""Durable "last active document" hint, kept outside the document store."""
from typing import Optional, Protocol

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from models.document import utcnow
from services.errors import StoreError

HINTS_COLLECTION = "session_hints"


class HintStore(Protocol):
    async def get(self) -> Optional[str]: ...

    async def set(self, document_id: str) -> None: ...

    async def clear(self) -> None: ...


class MongoHintStore:
    """One scalar per owner session: {_id: owner, active_id: ...}."""

    def __init__(self, db: AsyncIOMotorDatabase, owner: str):
        self.collection = db[HINTS_COLLECTION]
        self.owner = owner

    async def get(self) -> Optional[str]:
        try:
            record = await self.collection.find_one({"_id": self.owner})
        except PyMongoError as e:
            raise StoreError(f"Failed to read active hint: {e}") from e
        return record.get("active_id") if record else None

    async def set(self, document_id: str) -> None:
        try:
            await self.collection.update_one(
                {"_id": self.owner},
                {"$set": {"active_id": document_id, "updated_at": utcnow()}},
                upsert=True,
            )
        except PyMongoError as e:
            raise StoreError(f"Failed to write active hint: {e}") from e

    async def clear(self) -> None:
        try:
            await self.collection.delete_one({"_id": self.owner})
        except PyMongoError as e:
            raise StoreError(f"Failed to clear active hint: {e}") from e


class MemoryHintStore:
    def __init__(self, value: Optional[str] = None):
        self.value = value

    async def get(self) -> Optional[str]:
        return self.value

    async def set(self, document_id: str) -> None:
        self.value = document_id

    async def clear(self) -> None:
        self.value = None
