"""
MongoDB connection management using Motor (async)
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from typing import Optional
from inbox_core.config import settings


# Global async client instance
_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    """
    Get or create async MongoDB client instance

    Returns:
        AsyncIOMotorClient: Async MongoDB client
    """
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(settings.mongodb_uri)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    """
    Get the service database

    Returns:
        AsyncIOMotorDatabase: Async MongoDB database instance
    """
    client = get_client()
    return client[settings.database_name]


def get_collection(collection_name: str) -> AsyncIOMotorCollection:
    """
    Get a specific collection from the database

    Args:
        collection_name: Name of the collection

    Returns:
        AsyncIOMotorCollection: Async MongoDB collection instance
    """
    db = get_database()
    return db[collection_name]


async def close_connection():
    """Close the async MongoDB connection"""
    global _client
    if _client is not None:
        _client.close()
        _client = None


# Collection names
COLLECTION_AGENTS = "agents"
COLLECTION_INBOXES = "inboxes"
COLLECTION_INBOX_MEMBERS = "inbox_members"
COLLECTION_CONVERSATIONS = "conversations"
COLLECTION_AUDIT_LOGS = "audit_logs"
COLLECTION_CAMPAIGNS = "bulk_campaigns"
COLLECTION_API_KEYS = "api_keys"


async def ensure_indexes():
    """
    Create all required indexes for the database
    """
    db = get_database()

    # Agents indexes
    await db[COLLECTION_AGENTS].create_index([("agent_id", 1)], unique=True)
    await db[COLLECTION_AGENTS].create_index([("status", 1), ("availability", 1), ("name", 1)])

    # Inboxes indexes
    await db[COLLECTION_INBOXES].create_index([("inbox_id", 1)], unique=True)

    # Inbox membership indexes
    await db[COLLECTION_INBOX_MEMBERS].create_index([("inbox_id", 1), ("agent_id", 1)], unique=True)
    await db[COLLECTION_INBOX_MEMBERS].create_index([("agent_id", 1)])

    # Conversations indexes (per-agent load counts)
    await db[COLLECTION_CONVERSATIONS].create_index([("conversation_id", 1)], unique=True)
    await db[COLLECTION_CONVERSATIONS].create_index([("assigned_agent_id", 1), ("status", 1)])
    await db[COLLECTION_CONVERSATIONS].create_index([("inbox_id", 1), ("assigned_agent_id", 1)])

    # Audit logs indexes
    await db[COLLECTION_AUDIT_LOGS].create_index([("entity_type", 1), ("entity_id", 1), ("timestamp", -1)])

    # Campaign indexes
    await db[COLLECTION_CAMPAIGNS].create_index([("campaign_id", 1)], unique=True)
    await db[COLLECTION_CAMPAIGNS].create_index([("status", 1)])
    await db[COLLECTION_CAMPAIGNS].create_index([("processing_lock", 1), ("lock_acquired_at", 1)], sparse=True)

    # API Keys indexes
    await db[COLLECTION_API_KEYS].create_index([("api_key", 1)], unique=True)
    await db[COLLECTION_API_KEYS].create_index([("active", 1)])
