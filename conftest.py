import asyncio
import copy
import os
from collections import defaultdict
from typing import Any, Dict, List, Optional

# Ensure required env vars exist before importing app modules.
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")

import pytest
from inbox_core.database import (
    COLLECTION_AGENTS,
    COLLECTION_INBOXES,
    COLLECTION_INBOX_MEMBERS,
    COLLECTION_CONVERSATIONS,
    COLLECTION_API_KEYS,
)


class FakeInsertResult:
    def __init__(self, inserted_id):
        self.inserted_id = inserted_id


class FakeUpdateResult:
    def __init__(self, matched_count: int):
        self.matched_count = matched_count
        self.modified_count = matched_count


class FakeCollection:
    """Motor collection double that records calls and returns canned results."""

    def __init__(self) -> None:
        self.inserted = []
        self.updated = []
        self.find_one_result = None
        self.find_one_results = []
        self.find_results = []
        self.count_result = 0
        self.matched_count = 1
        self.last_sort = None

    async def insert_one(self, document: Dict[str, Any], *args, **kwargs):
        self.inserted.append({"document": document, "args": args, "kwargs": kwargs})
        return FakeInsertResult(document.get("_id", "fake_id"))

    async def update_one(self, filter_dict, update_dict, *args, **kwargs):
        self.updated.append({"filter": filter_dict, "update": update_dict, "args": args, "kwargs": kwargs})
        return FakeUpdateResult(self.matched_count)

    async def find_one(self, *args, **kwargs):
        if self.find_one_results:
            return self.find_one_results.pop(0)
        return self.find_one_result

    async def count_documents(self, *args, **kwargs):
        return self.count_result

    def find(self, *args, **kwargs):
        return FakeCursor(list(self.find_results), owner=self)


class FakeCursor:
    def __init__(self, items, owner: Optional[FakeCollection] = None):
        self.items = list(items)
        self.owner = owner

    def sort(self, *args, **kwargs):
        if self.owner is not None:
            self.owner.last_sort = args[0] if args else None
        return self

    def __aiter__(self):
        self._iter = iter(self.items)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


def _compare(actual, op: str, expected) -> bool:
    if op == "$ne":
        return actual != expected
    if op == "$in":
        return actual in expected
    if op == "$nin":
        return actual not in expected
    if actual is None:
        return False
    if op == "$lt":
        return actual < expected
    if op == "$lte":
        return actual <= expected
    if op == "$gt":
        return actual > expected
    if op == "$gte":
        return actual >= expected
    raise ValueError(f"Unsupported operator {op}")


def matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    """Evaluate the subset of MongoDB filter syntax the services use."""
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
            continue
        if key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
            continue

        actual = document.get(key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_compare(actual, op, expected) for op, expected in condition.items()):
                return False
        elif actual != condition:
            # None also matches a missing field
            return False
    return True


class InMemoryStore:
    """
    Store double over plain dicts.

    Writes yield to the event loop before matching, so concurrent callers
    interleave the way they would against a real server while each
    match-and-set stays atomic.
    """

    def __init__(self) -> None:
        self.collections: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.calls: List[tuple] = []
        self._failures: List[tuple] = []
        self._next_id = 0

    def seed(self, collection: str, *documents: Dict[str, Any]) -> None:
        for document in documents:
            self.collections[collection].append(copy.deepcopy(document))

    def docs(self, collection: str) -> List[Dict[str, Any]]:
        return self.collections[collection]

    def get(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for document in self.collections[collection]:
            if matches(document, query):
                return document
        return None

    def fail(self, op: str, collection: str, when: Optional[Dict[str, Any]] = None, error: Exception = None) -> None:
        """Make ``op`` on ``collection`` raise (only for queries containing ``when``)."""
        self._failures.append((op, collection, when or {}, error or RuntimeError(f"{op} on {collection} failed")))

    def _check(self, op: str, collection: str, query: Dict[str, Any]) -> None:
        self.calls.append((op, collection, copy.deepcopy(query)))
        for f_op, f_collection, when, error in self._failures:
            if f_op == op and f_collection == collection and all(query.get(k) == v for k, v in when.items()):
                raise error

    async def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._check("find_one", collection, query)
        document = self.get(collection, query)
        return copy.deepcopy(document) if document is not None else None

    async def find(self, collection: str, query: Dict[str, Any], sort=None) -> List[Dict[str, Any]]:
        self._check("find", collection, query)
        rows = [copy.deepcopy(d) for d in self.collections[collection] if matches(d, query)]
        for field, direction in reversed(list(sort or [])):
            rows.sort(key=lambda d: d.get(field), reverse=direction < 0)
        return rows

    async def count(self, collection: str, query: Dict[str, Any]) -> int:
        self._check("count", collection, query)
        return sum(1 for d in self.collections[collection] if matches(d, query))

    async def update_one(self, collection: str, query: Dict[str, Any], values: Dict[str, Any]) -> bool:
        await asyncio.sleep(0)
        self._check("update_one", collection, query)
        document = self.get(collection, query)
        if document is None:
            return False
        document.update(copy.deepcopy(values))
        return True

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> Any:
        await asyncio.sleep(0)
        self._check("insert_one", collection, {})
        self._next_id += 1
        stored = copy.deepcopy(document)
        stored.setdefault("_id", f"id_{self._next_id}")
        self.collections[collection].append(stored)
        return stored["_id"]


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def support_inbox(store):
    """Inbox "support" with Alice (0 open), Bob (1 open), Carol (offline), Dave (inactive)."""
    store.seed(
        COLLECTION_INBOXES,
        {
            "inbox_id": "support",
            "name": "Support",
            "enable_auto_assignment": True,
            "max_conversations_per_agent": 2,
            "last_assigned_agent_id": None,
        },
    )
    store.seed(
        COLLECTION_AGENTS,
        {"agent_id": "a-bob", "name": "Bob", "availability": "online", "status": "active"},
        {"agent_id": "a-alice", "name": "Alice", "availability": "online", "status": "active"},
        {"agent_id": "a-carol", "name": "Carol", "availability": "offline", "status": "active"},
        {"agent_id": "a-dave", "name": "Dave", "availability": "online", "status": "inactive"},
    )
    store.seed(
        COLLECTION_INBOX_MEMBERS,
        *[{"inbox_id": "support", "agent_id": agent_id} for agent_id in ("a-alice", "a-bob", "a-carol", "a-dave")],
    )
    store.seed(
        COLLECTION_CONVERSATIONS,
        {"conversation_id": "c-bob-1", "inbox_id": "support", "assigned_agent_id": "a-bob", "status": "open"},
        {"conversation_id": "c-1", "inbox_id": "support", "assigned_agent_id": None, "status": "open"},
        {"conversation_id": "c-2", "inbox_id": "support", "assigned_agent_id": None, "status": "open"},
        {"conversation_id": "c-3", "inbox_id": "support", "assigned_agent_id": None, "status": "open"},
    )
    return "support"


@pytest.fixture
def fake_db(monkeypatch):
    collections = {
        COLLECTION_API_KEYS: FakeCollection(),
    }

    def _get_collection(name: str) -> FakeCollection:
        return collections[name]

    monkeypatch.setattr("inbox_core.database.get_collection", _get_collection)
    monkeypatch.setattr("inbox_core.middleware.auth.get_collection", _get_collection)

    return collections
