import logging
from typing import Optional

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from core.config import settings
from services.store import DOCUMENTS_COLLECTION

logger = logging.getLogger(__name__)

# Global connection variables
mongo_client: Optional[AsyncIOMotorClient] = None
db: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo() -> None:
    """
    Initialize MongoDB connection using Motor and verify SSL certificates.
    Creates indexes for the documents collection.
    """
    global mongo_client, db
    if not settings.mongo_uri:
        logger.warning("MONGO_URI is not set; documents are kept in memory only")
        return
    if mongo_client is None:
        mongo_client = AsyncIOMotorClient(
            str(settings.mongo_uri),
            tlsCAFile=certifi.where()  # Required for MongoDB Atlas SSL connections
        )
        # Get database from the URI path (e.g., /pdf-query in the connection string)
        db = mongo_client.get_default_database()

        await create_document_indexes()

        logger.info("Connected to MongoDB: %s", db.name)


async def close_mongo_connection() -> None:
    """
    Close the MongoDB connection.
    """
    global mongo_client, db
    if mongo_client is not None:
        mongo_client.close()
        mongo_client = None
        db = None
        logger.info("MongoDB connection closed")


def get_database() -> AsyncIOMotorDatabase:
    """
    Get the database instance.
    Raises RuntimeError if database is not connected.

    Returns:
        AsyncIOMotorDatabase: The MongoDB database instance
    """
    if db is None:
        raise RuntimeError(
            "Database not connected. Call connect_to_mongo() first."
        )
    return db


def is_connected() -> bool:
    return db is not None


async def create_document_indexes() -> None:
    """
    Create indexes used by the document store.
    This is called automatically during connect_to_mongo().
    """
    if db is None:
        return

    documents = db[DOCUMENTS_COLLECTION]

    # Listing an owner's documents in upload order
    await documents.create_index(
        [("owner_id", 1), ("created_at", 1)],
        name="owner_created_idx"
    )

    # Duplicate-name guard backstop
    await documents.create_index(
        [("owner_id", 1), ("name", 1)],
        name="owner_name_idx",
        unique=True,
    )

    logger.info("Document indexes created successfully")
