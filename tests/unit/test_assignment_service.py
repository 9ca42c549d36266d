"""
Unit tests for round-robin assignment and the explicit assignment operations
"""
import asyncio

import pytest

from conftest import InMemoryStore
from inbox_core.database import (
    COLLECTION_AGENTS,
    COLLECTION_AUDIT_LOGS,
    COLLECTION_CONVERSATIONS,
    COLLECTION_INBOXES,
    COLLECTION_INBOX_MEMBERS,
)
from inbox_core.models import AvailableAgent
from inbox_core.services import ConversationAssignmentService, select_next_agent


def _agent(agent_id: str, name: str) -> AvailableAgent:
    return AvailableAgent(agent_id=agent_id, name=name, availability="online")


def _holder(store, conversation_id: str):
    return store.get(COLLECTION_CONVERSATIONS, {"conversation_id": conversation_id})["assigned_agent_id"]


class TestSelectNextAgent:
    """Tests for the round-robin cursor"""

    def test_no_candidates(self):
        assert select_next_agent([], "a-1") is None

    def test_no_cursor_picks_first(self):
        agents = [_agent("a-1", "Ann"), _agent("a-2", "Ben")]
        assert select_next_agent(agents, None).agent_id == "a-1"

    def test_picks_agent_after_cursor(self):
        agents = [_agent("a-1", "Ann"), _agent("a-2", "Ben"), _agent("a-3", "Cid")]
        assert select_next_agent(agents, "a-2").agent_id == "a-3"

    def test_wraps_after_last(self):
        agents = [_agent("a-1", "Ann"), _agent("a-2", "Ben"), _agent("a-3", "Cid")]
        assert select_next_agent(agents, "a-3").agent_id == "a-1"

    def test_cursor_agent_missing_picks_first(self):
        agents = [_agent("a-1", "Ann"), _agent("a-3", "Cid")]
        assert select_next_agent(agents, "a-2").agent_id == "a-1"

    def test_full_rotation_visits_every_agent(self):
        agents = [_agent(f"a-{i}", f"Agent {i}") for i in range(4)]
        cursor = None
        picked = []
        for _ in range(8):
            cursor = select_next_agent(agents, cursor).agent_id
            picked.append(cursor)
        assert picked == ["a-0", "a-1", "a-2", "a-3"] * 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_available_agents_sorted_by_name_with_counts(store, support_inbox):
    service = ConversationAssignmentService(store)

    agents = await service.get_available_agents(support_inbox)

    assert [a.agent_id for a in agents] == ["a-alice", "a-bob"]
    assert [a.conversation_count for a in agents] == [0, 1]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_available_agents_cap_filters_loaded_agents(store, support_inbox):
    service = ConversationAssignmentService(store)

    agents = await service.get_available_agents(support_inbox, max_conversations_per_agent=1)

    assert [a.agent_id for a in agents] == ["a-alice"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_available_agents_ignores_closed_conversations(store, support_inbox):
    store.seed(
        COLLECTION_CONVERSATIONS,
        {"conversation_id": "c-old", "inbox_id": "support", "assigned_agent_id": "a-alice", "status": "resolved"},
    )
    service = ConversationAssignmentService(store)

    assert await service.get_agent_conversation_count("a-alice") == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_available_agents_empty_inbox(store):
    service = ConversationAssignmentService(store)

    assert await service.get_available_agents("nobody-here") == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_next_agent_none_when_inbox_missing(store):
    service = ConversationAssignmentService(store)

    assert await service.get_next_available_agent("missing") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_next_agent_none_when_auto_assignment_disabled(store, support_inbox):
    store.get(COLLECTION_INBOXES, {"inbox_id": support_inbox})["enable_auto_assignment"] = False
    service = ConversationAssignmentService(store)

    assert await service.get_next_available_agent(support_inbox) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_next_agent_has_no_side_effect(store, support_inbox):
    service = ConversationAssignmentService(store)

    assert await service.get_next_available_agent(support_inbox) == "a-alice"
    assert await service.get_next_available_agent(support_inbox) == "a-alice"
    assert store.get(COLLECTION_INBOXES, {"inbox_id": support_inbox})["last_assigned_agent_id"] is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auto_assign_round_robin_with_cap(store, support_inbox):
    service = ConversationAssignmentService(store)

    assert await service.auto_assign(support_inbox, "c-1") == "a-alice"
    assert store.get(COLLECTION_INBOXES, {"inbox_id": support_inbox})["last_assigned_agent_id"] == "a-alice"

    assert await service.auto_assign(support_inbox, "c-2") == "a-bob"

    # Bob is now at the cap of 2, so the cursor agent is gone from the candidates
    assert await service.auto_assign(support_inbox, "c-3") == "a-alice"

    assert _holder(store, "c-1") == "a-alice"
    assert _holder(store, "c-2") == "a-bob"
    assert _holder(store, "c-3") == "a-alice"

    audit = store.docs(COLLECTION_AUDIT_LOGS)
    assert [entry["action"] for entry in audit] == ["auto_assign"] * 3
    assert audit[0]["entity_type"] == "conversation_assignment"
    assert audit[0]["entity_id"] == "c-1"
    assert audit[0]["old_value"] is None
    assert audit[0]["new_value"] == {"agent_id": "a-alice"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auto_assign_no_agent_leaves_conversation_unassigned(store, support_inbox):
    for agent in store.docs(COLLECTION_AGENTS):
        agent["availability"] = "offline"
    service = ConversationAssignmentService(store)

    assert await service.auto_assign(support_inbox, "c-1") is None
    assert _holder(store, "c-1") is None
    assert store.get(COLLECTION_INBOXES, {"inbox_id": support_inbox})["last_assigned_agent_id"] is None
    assert store.docs(COLLECTION_AUDIT_LOGS) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auto_assign_offline_cursor_agent_restarts_rotation(store, support_inbox):
    store.get(COLLECTION_INBOXES, {"inbox_id": support_inbox})["last_assigned_agent_id"] = "a-carol"
    service = ConversationAssignmentService(store)

    assert await service.auto_assign(support_inbox, "c-1") == "a-alice"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auto_assign_missing_conversation_keeps_cursor(store, support_inbox):
    service = ConversationAssignmentService(store)

    assert await service.auto_assign(support_inbox, "c-missing") is None
    assert store.get(COLLECTION_INBOXES, {"inbox_id": support_inbox})["last_assigned_agent_id"] is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pickup_race_has_single_winner(store, support_inbox):
    service = ConversationAssignmentService(store)

    results = await asyncio.gather(
        service.pickup_conversation("c-1", "a-alice"),
        service.pickup_conversation("c-1", "a-bob"),
    )

    assert sorted(results) == [False, True]
    winner = "a-alice" if results[0] else "a-bob"
    assert _holder(store, "c-1") == winner

    pickups = [e for e in store.docs(COLLECTION_AUDIT_LOGS) if e["action"] == "pickup"]
    assert len(pickups) == 1
    assert pickups[0]["new_value"] == {"agent_id": winner}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pickup_already_assigned_returns_false(store, support_inbox):
    service = ConversationAssignmentService(store)

    assert await service.pickup_conversation("c-bob-1", "a-alice") is False
    assert _holder(store, "c-bob-1") == "a-bob"
    assert store.docs(COLLECTION_AUDIT_LOGS) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transfer_records_source_and_target(store, support_inbox):
    service = ConversationAssignmentService(store)

    assert await service.transfer_conversation("c-bob-1", "a-carol", "a-bob") is True

    assert _holder(store, "c-bob-1") == "a-carol"
    entry = store.docs(COLLECTION_AUDIT_LOGS)[-1]
    assert entry["action"] == "transfer"
    assert entry["old_value"] == {"agent_id": "a-bob"}
    assert entry["new_value"] == {"agent_id": "a-carol"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transfer_missing_conversation(store, support_inbox):
    service = ConversationAssignmentService(store)

    assert await service.transfer_conversation("c-missing", "a-alice", None) is False
    assert store.docs(COLLECTION_AUDIT_LOGS) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_release_is_idempotent_and_does_not_reassign(store, support_inbox):
    service = ConversationAssignmentService(store)

    assert await service.release_conversation("c-bob-1", "a-bob") is True
    assert await service.release_conversation("c-bob-1", "a-bob") is True

    assert _holder(store, "c-bob-1") is None
    assert store.get(COLLECTION_INBOXES, {"inbox_id": support_inbox})["last_assigned_agent_id"] is None

    actions = [e["action"] for e in store.docs(COLLECTION_AUDIT_LOGS)]
    assert actions == ["release", "release"]
    assert store.docs(COLLECTION_AUDIT_LOGS)[0]["old_value"] == {"agent_id": "a-bob"}
    assert store.docs(COLLECTION_AUDIT_LOGS)[0]["new_value"] is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_manual_assign_audits_assigner_as_old_value(store, support_inbox):
    service = ConversationAssignmentService(store)

    assert await service.manual_assign("c-bob-1", "a-alice", "owner-1") is True

    assert _holder(store, "c-bob-1") == "a-alice"
    entry = store.docs(COLLECTION_AUDIT_LOGS)[-1]
    assert entry["action"] == "manual_assign"
    assert entry["old_value"] == {"agent_id": "owner-1"}
    assert entry["new_value"] == {"agent_id": "a-alice"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_operation(store, support_inbox):
    store.fail("insert_one", COLLECTION_AUDIT_LOGS)
    service = ConversationAssignmentService(store)

    assert await service.pickup_conversation("c-1", "a-alice") is True
    assert _holder(store, "c-1") == "a-alice"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_failure_propagates(store, support_inbox):
    store.fail("update_one", COLLECTION_CONVERSATIONS)
    service = ConversationAssignmentService(store)

    with pytest.raises(RuntimeError):
        await service.pickup_conversation("c-1", "a-alice")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_agent_access(store, support_inbox):
    store.seed(COLLECTION_AGENTS, {"agent_id": "a-outsider", "name": "Eve", "availability": "online", "status": "active"})
    service = ConversationAssignmentService(store)

    assert await service.check_agent_access("a-alice", "c-1") is True
    assert await service.check_agent_access("a-outsider", "c-1") is False
    assert await service.check_agent_access("a-alice", "c-missing") is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_agent_access_lookup_failure_denies(store, support_inbox):
    store.fail("find_one", COLLECTION_CONVERSATIONS)
    service = ConversationAssignmentService(store)

    assert await service.check_agent_access("a-alice", "c-1") is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_conversation_assignment_includes_holder(store, support_inbox):
    service = ConversationAssignmentService(store)

    assignment = await service.get_conversation_assignment("c-bob-1")

    assert assignment.inbox_id == "support"
    assert assignment.assigned_agent_id == "a-bob"
    assert assignment.assigned_agent_name == "Bob"
    assert assignment.assigned_agent_availability == "online"

    unassigned = await service.get_conversation_assignment("c-1")
    assert unassigned.assigned_agent_id is None
    assert unassigned.assigned_agent_name is None

    assert await service.get_conversation_assignment("c-missing") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transferable_agents_include_offline_and_exclude_holder(store, support_inbox):
    service = ConversationAssignmentService(store)

    agents = await service.get_transferable_agents(support_inbox, exclude_agent_id="a-bob")

    # Dave is inactive; Carol is offline but still transferable
    assert [a.agent_id for a in agents] == ["a-alice", "a-carol"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auto_assign_wraps_after_every_agent_served(store):
    store.seed(COLLECTION_INBOXES, {"inbox_id": "sales", "name": "Sales", "enable_auto_assignment": True})
    store.seed(
        COLLECTION_AGENTS,
        {"agent_id": "a-alice", "name": "Alice", "availability": "online", "status": "active"},
        {"agent_id": "a-bob", "name": "Bob", "availability": "online", "status": "active"},
    )
    store.seed(
        COLLECTION_INBOX_MEMBERS,
        {"inbox_id": "sales", "agent_id": "a-alice"},
        {"inbox_id": "sales", "agent_id": "a-bob"},
    )
    store.seed(
        COLLECTION_CONVERSATIONS,
        *[{"conversation_id": f"s-{i}", "inbox_id": "sales", "status": "open"} for i in range(3)],
    )
    service = ConversationAssignmentService(store)

    assigned = [await service.auto_assign("sales", f"s-{i}") for i in range(3)]

    assert assigned == ["a-alice", "a-bob", "a-alice"]
    assert store.get(COLLECTION_INBOXES, {"inbox_id": "sales"})["last_assigned_agent_id"] == "a-alice"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auto_assign_survives_audit_failure(store, support_inbox):
    store.fail("insert_one", COLLECTION_AUDIT_LOGS)
    service = ConversationAssignmentService(store)

    assert await service.auto_assign(support_inbox, "c-1") == "a-alice"

    assert _holder(store, "c-1") == "a-alice"
    assert store.get(COLLECTION_INBOXES, {"inbox_id": support_inbox})["last_assigned_agent_id"] == "a-alice"
    assert store.docs(COLLECTION_AUDIT_LOGS) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_agent_counts_are_queried_concurrently(store, support_inbox):
    class TrackingStore(InMemoryStore):
        def __init__(self, source):
            super().__init__()
            self.collections = source.collections
            self.in_flight = 0
            self.peak = 0

        async def count(self, collection, query):
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            await asyncio.sleep(0)
            try:
                return await super().count(collection, query)
            finally:
                self.in_flight -= 1

    tracking = TrackingStore(store)
    service = ConversationAssignmentService(tracking)

    agents = await service.get_available_agents(support_inbox)

    assert [a.conversation_count for a in agents] == [0, 1]
    assert tracking.peak == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_inbox_row_is_read_with_defaults_and_coercion(store):
    store.seed(COLLECTION_INBOXES, {"_id": "oid-1", "inbox_id": "quiet"})
    store.seed(
        COLLECTION_INBOXES,
        {"_id": "oid-2", "inbox_id": "capped", "enable_auto_assignment": True, "max_conversations_per_agent": "1"},
    )
    store.seed(COLLECTION_AGENTS, {"agent_id": "a-alice", "name": "Alice", "availability": "online", "status": "active"})
    store.seed(COLLECTION_INBOX_MEMBERS, {"_id": "oid-3", "inbox_id": "capped", "agent_id": "a-alice"})
    store.seed(
        COLLECTION_CONVERSATIONS,
        {"_id": "oid-4", "conversation_id": "k-1", "inbox_id": "capped", "assigned_agent_id": "a-alice", "status": "open"},
    )
    service = ConversationAssignmentService(store)

    # Missing enable_auto_assignment means disabled
    assert await service.get_next_available_agent("quiet") is None
    # Alice already holds one conversation and the cap is 1
    assert await service.get_next_available_agent("capped") is None
