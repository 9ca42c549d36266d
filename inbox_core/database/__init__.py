"""
Database connection and utilities
"""
from .connection import (
    get_client,
    get_database,
    get_collection,
    close_connection,
    ensure_indexes,
    COLLECTION_AGENTS,
    COLLECTION_INBOXES,
    COLLECTION_INBOX_MEMBERS,
    COLLECTION_CONVERSATIONS,
    COLLECTION_AUDIT_LOGS,
    COLLECTION_CAMPAIGNS,
    COLLECTION_API_KEYS,
)
from .store import Store, MongoStore

__all__ = [
    "get_client",
    "get_database",
    "get_collection",
    "close_connection",
    "ensure_indexes",
    "Store",
    "MongoStore",
    "COLLECTION_AGENTS",
    "COLLECTION_INBOXES",
    "COLLECTION_INBOX_MEMBERS",
    "COLLECTION_CONVERSATIONS",
    "COLLECTION_AUDIT_LOGS",
    "COLLECTION_CAMPAIGNS",
    "COLLECTION_API_KEYS",
]
