"""
Document store adapters.

All operations are scoped to an owner id. `upsert` only ever touches the
fields it is given, so a transcript write can never clobber content or text.
"""
import logging
from copy import deepcopy
from typing import Any, Dict, List, Protocol

from gridfs.errors import NoFile
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorGridFSBucket
from pymongo.errors import PyMongoError

from models.document import Document, Message, utcnow
from services.errors import StoreError

logger = logging.getLogger(__name__)

DOCUMENTS_COLLECTION = "pdf_documents"
CONTENT_BUCKET = "pdf_content"

# Fields fixed at creation time
IMMUTABLE_FIELDS = frozenset({"_id", "id", "owner_id", "name", "content", "text", "created_at"})


class DocumentStore(Protocol):
    async def create(self, owner: str, document: Document) -> None: ...

    async def list(self, owner: str) -> List[Document]: ...

    async def upsert(self, owner: str, document_id: str, fields: Dict[str, Any]) -> None: ...

    async def delete_all(self, owner: str) -> None: ...


def _check_partial_fields(fields: Dict[str, Any]) -> None:
    touched = IMMUTABLE_FIELDS.intersection(fields)
    if touched:
        raise ValueError(f"Cannot overwrite immutable document fields: {sorted(touched)}")


class MongoDocumentStore:
    """Documents in `pdf_documents`, PDF payloads in the `pdf_content` GridFS bucket."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[DOCUMENTS_COLLECTION]
        self.bucket = AsyncIOMotorGridFSBucket(db, bucket_name=CONTENT_BUCKET)

    async def create(self, owner: str, document: Document) -> None:
        file_id = None
        try:
            file_id = await self.bucket.upload_from_stream(
                document.name,
                document.content,
                metadata={"owner_id": owner, "document_id": document.id},
            )
            await self.collection.insert_one({
                "_id": document.id,
                "owner_id": owner,
                "name": document.name,
                "text": document.text,
                "transcript": [m.model_dump() for m in document.transcript],
                "content_file_id": file_id,
                "created_at": document.created_at,
                "updated_at": document.created_at,
            })
        except PyMongoError as e:
            if file_id is not None:
                await self._delete_file(file_id)
            raise StoreError(f"Failed to save document {document.id!r}: {e}") from e

    async def list(self, owner: str) -> List[Document]:
        try:
            cursor = self.collection.find({"owner_id": owner}).sort("created_at", 1)
            records = [record async for record in cursor]
            documents = []
            for record in records:
                if "name" not in record:
                    logger.warning("Skipping incomplete document record %s", record["_id"])
                    continue
                content = b""
                if record.get("content_file_id") is not None:
                    try:
                        stream = await self.bucket.open_download_stream(record["content_file_id"])
                        content = await stream.read()
                    except NoFile:
                        logger.warning("PDF content missing for document %s", record["_id"])
                documents.append(Document(
                    id=record["_id"],
                    name=record["name"],
                    content=content,
                    text=record.get("text", ""),
                    transcript=[Message(**m) for m in record.get("transcript", [])],
                    created_at=record["created_at"],
                ))
            return documents
        except PyMongoError as e:
            raise StoreError(f"Failed to list documents: {e}") from e

    async def upsert(self, owner: str, document_id: str, fields: Dict[str, Any]) -> None:
        _check_partial_fields(fields)
        try:
            await self.collection.update_one(
                {"_id": document_id, "owner_id": owner},
                {"$set": {**fields, "updated_at": utcnow()}},
                upsert=True,
            )
        except PyMongoError as e:
            raise StoreError(f"Failed to update document {document_id!r}: {e}") from e

    async def delete_all(self, owner: str) -> None:
        """
        Delete the owner's records, then the GridFS files of the records that
        are actually gone. Raises StoreError if any record survived.
        """
        try:
            records = await self.collection.find(
                {"owner_id": owner}, {"content_file_id": 1}
            ).to_list(length=None)
            ids = [record["_id"] for record in records]
            result = await self.collection.delete_many({"owner_id": owner, "_id": {"$in": ids}})
            survivors = set()
            if result.deleted_count != len(records):
                remaining = await self.collection.find(
                    {"owner_id": owner, "_id": {"$in": ids}}, {"_id": 1}
                ).to_list(length=None)
                survivors = {record["_id"] for record in remaining}
        except PyMongoError as e:
            raise StoreError(f"Failed to delete documents: {e}") from e

        for record in records:
            if record["_id"] not in survivors and record.get("content_file_id") is not None:
                await self._delete_file(record["content_file_id"])

        if survivors:
            raise StoreError(f"Partial delete: {len(survivors)} of {len(records)} documents remain")
        logger.info("Deleted %d documents for owner %s", len(records), owner)

    async def _delete_file(self, file_id: Any) -> None:
        # Records are authoritative; a leftover file is only logged
        try:
            await self.bucket.delete(file_id)
        except NoFile:
            pass
        except PyMongoError as e:
            logger.warning("Could not delete PDF content %s: %s", file_id, e)


class InMemoryDocumentStore:
    """Dict-backed store with the same contract as MongoDocumentStore."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Dict[str, Any]]] = {}

    async def create(self, owner: str, document: Document) -> None:
        records = self._records.setdefault(owner, {})
        if document.id in records:
            raise StoreError(f"Duplicate document id {document.id!r}")
        records[document.id] = {
            **document.model_dump(),
            "updated_at": document.created_at,
        }

    async def list(self, owner: str) -> List[Document]:
        records = [r for r in self._records.get(owner, {}).values() if "name" in r]
        ordered = sorted(records, key=lambda r: r["created_at"])
        return [
            Document(**{k: deepcopy(v) for k, v in r.items() if k != "updated_at"})
            for r in ordered
        ]

    async def upsert(self, owner: str, document_id: str, fields: Dict[str, Any]) -> None:
        _check_partial_fields(fields)
        record = self._records.setdefault(owner, {}).setdefault(document_id, {"id": document_id})
        record.update(deepcopy(fields))
        record["updated_at"] = utcnow()

    async def delete_all(self, owner: str) -> None:
        self._records.pop(owner, None)
