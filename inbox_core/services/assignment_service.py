"""
Conversation assignment to human agents.

Round-robin auto-assignment bounded by a per-agent conversation cap, plus the
explicit pickup / transfer / release / manual-assign operations. Every
mutating operation leaves an audit entry; audit failures never affect the
result of the operation.

Pickup is the only operation that must be exclusive. It is a single
conditional write ("assign where nobody is assigned"), so two agents racing
for the same conversation cannot both win. The round-robin cursor is
best-effort: two concurrent auto-assignments on one inbox may pick the same
agent.
"""
import asyncio
import logging
from typing import List, Optional, Sequence

from inbox_core.database import (
    Store,
    COLLECTION_AGENTS,
    COLLECTION_INBOXES,
    COLLECTION_INBOX_MEMBERS,
    COLLECTION_CONVERSATIONS,
)
from inbox_core.models import (
    AvailableAgent,
    AgentAvailability,
    AgentStatus,
    AssignmentAction,
    Conversation,
    ConversationAssignment,
    ConversationStatus,
    Inbox,
    InboxMember,
    ENTITY_CONVERSATION_ASSIGNMENT,
)
from inbox_core.services.audit_logger import AuditLogger

logger = logging.getLogger(__name__)


def select_next_agent(
    agents: Sequence[AvailableAgent],
    last_assigned_agent_id: Optional[str],
) -> Optional[AvailableAgent]:
    """
    Pick the agent after the round-robin cursor.

    Wraps to the first agent after the last one. When the cursor agent is not
    in the list (went offline, hit the cap) or there is no cursor yet, the
    first agent is chosen.

    Args:
        agents: Candidates in rotation order
        last_assigned_agent_id: Inbox cursor

    Returns:
        Selected agent or None if there are no candidates
    """
    if not agents:
        return None

    if last_assigned_agent_id:
        ids = [agent.agent_id for agent in agents]
        if last_assigned_agent_id in ids:
            last_index = ids.index(last_assigned_agent_id)
            return agents[(last_index + 1) % len(agents)]

    return agents[0]


class ConversationAssignmentService:
    """Routes conversations to agents of an inbox"""

    def __init__(self, store: Store, audit_logger: Optional[AuditLogger] = None):
        self.store = store
        self.audit_logger = audit_logger or AuditLogger(store)

    # ------------------------------------------------------------------
    # Agent load and availability
    # ------------------------------------------------------------------

    async def get_agent_conversation_count(self, agent_id: str) -> int:
        """
        Count open conversations assigned to an agent

        Args:
            agent_id: Agent ID

        Returns:
            Number of open conversations
        """
        try:
            return await self.store.count(
                COLLECTION_CONVERSATIONS,
                {"assigned_agent_id": agent_id, "status": ConversationStatus.OPEN.value},
            )
        except Exception as e:
            logger.error(f"Failed to count conversations for agent {agent_id}: {e}")
            raise

    async def _inbox_agent_ids(self, inbox_id: str) -> List[str]:
        rows = await self.store.find(COLLECTION_INBOX_MEMBERS, {"inbox_id": inbox_id})
        return [InboxMember.model_validate(row).agent_id for row in rows]

    async def _with_counts(self, agent_docs: List[dict]) -> List[AvailableAgent]:
        counts = await asyncio.gather(
            *(self.get_agent_conversation_count(doc["agent_id"]) for doc in agent_docs)
        )
        return [
            AvailableAgent(**doc, conversation_count=count)
            for doc, count in zip(agent_docs, counts)
        ]

    async def get_available_agents(
        self,
        inbox_id: str,
        max_conversations_per_agent: Optional[int] = None,
    ) -> List[AvailableAgent]:
        """
        Get online agents of an inbox who can take a new conversation

        Args:
            inbox_id: Inbox ID
            max_conversations_per_agent: Open-conversation cap (None = unlimited)

        Returns:
            Agents ordered by name, each with its conversation_count
        """
        try:
            agent_ids = await self._inbox_agent_ids(inbox_id)
            if not agent_ids:
                return []

            agent_docs = await self.store.find(
                COLLECTION_AGENTS,
                {
                    "agent_id": {"$in": agent_ids},
                    "availability": AgentAvailability.ONLINE.value,
                    "status": AgentStatus.ACTIVE.value,
                },
                sort=[("name", 1)],
            )
            agents = await self._with_counts(agent_docs)

            if max_conversations_per_agent is not None:
                return [a for a in agents if a.conversation_count < max_conversations_per_agent]

            return agents
        except Exception as e:
            logger.error(f"Failed to get available agents for inbox {inbox_id}: {e}")
            raise

    async def get_next_available_agent(self, inbox_id: str) -> Optional[str]:
        """
        Choose the next agent for round-robin assignment

        Has no side effect; the caller applies the decision.

        Args:
            inbox_id: Inbox ID

        Returns:
            Agent ID or None if auto-assignment is off or nobody is available
        """
        row = await self.store.find_one(COLLECTION_INBOXES, {"inbox_id": inbox_id})
        if not row:
            logger.warning(f"Inbox {inbox_id} not found for assignment")
            return None

        inbox = Inbox.model_validate(row)
        if not inbox.enable_auto_assignment:
            logger.debug(f"Auto-assignment disabled for inbox {inbox_id}")
            return None

        available = await self.get_available_agents(
            inbox_id,
            inbox.max_conversations_per_agent,
        )
        next_agent = select_next_agent(available, inbox.last_assigned_agent_id)

        if next_agent is None:
            logger.debug(f"No available agents for inbox {inbox_id}")
            return None

        logger.debug(
            f"Next agent for inbox {inbox_id}: {next_agent.agent_id} ({next_agent.name})"
        )
        return next_agent.agent_id

    # ------------------------------------------------------------------
    # Assignment operations
    # ------------------------------------------------------------------

    async def auto_assign(self, inbox_id: str, conversation_id: str) -> Optional[str]:
        """
        Assign a conversation to the next agent in rotation

        Args:
            inbox_id: Inbox ID
            conversation_id: Conversation ID

        Returns:
            Assigned agent ID, or None when no agent is available (the
            conversation stays unassigned)
        """
        try:
            agent_id = await self.get_next_available_agent(inbox_id)
            if not agent_id:
                logger.info(
                    f"No agent available for auto-assignment of conversation {conversation_id} "
                    f"(inbox {inbox_id})"
                )
                return None

            matched = await self.store.update_one(
                COLLECTION_CONVERSATIONS,
                {"conversation_id": conversation_id},
                {"assigned_agent_id": agent_id},
            )
            if not matched:
                logger.warning(f"Conversation {conversation_id} not found for auto-assignment")
                return None

            # Advance the round-robin cursor
            await self.store.update_one(
                COLLECTION_INBOXES,
                {"inbox_id": inbox_id},
                {"last_assigned_agent_id": agent_id},
            )

            await self._log_assignment_action(conversation_id, None, agent_id, AssignmentAction.AUTO_ASSIGN)

            logger.info(f"Conversation {conversation_id} auto-assigned to {agent_id} (inbox {inbox_id})")
            return agent_id
        except Exception as e:
            logger.error(f"Failed to auto-assign conversation {conversation_id} in inbox {inbox_id}: {e}")
            raise

    async def pickup_conversation(self, conversation_id: str, agent_id: str) -> bool:
        """
        Let an agent claim an unassigned conversation

        Args:
            conversation_id: Conversation ID
            agent_id: Agent picking up

        Returns:
            True if this call assigned the conversation, False if it was
            already taken
        """
        try:
            won = await self.store.update_one(
                COLLECTION_CONVERSATIONS,
                {"conversation_id": conversation_id, "assigned_agent_id": None},
                {"assigned_agent_id": agent_id},
            )
            if not won:
                logger.warning(f"Pickup of conversation {conversation_id} by {agent_id} failed - already assigned")
                return False

            await self._log_assignment_action(conversation_id, None, agent_id, AssignmentAction.PICKUP)

            logger.info(f"Conversation {conversation_id} picked up by {agent_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to pick up conversation {conversation_id} for {agent_id}: {e}")
            raise

    async def transfer_conversation(
        self,
        conversation_id: str,
        target_agent_id: str,
        source_agent_id: Optional[str],
    ) -> bool:
        """
        Hand a conversation over to another agent

        The source agent is recorded for audit only.

        Returns:
            False if the conversation does not exist
        """
        try:
            matched = await self.store.update_one(
                COLLECTION_CONVERSATIONS,
                {"conversation_id": conversation_id},
                {"assigned_agent_id": target_agent_id},
            )
            if not matched:
                logger.warning(f"Conversation {conversation_id} not found for transfer")
                return False

            await self._log_assignment_action(
                conversation_id, source_agent_id, target_agent_id, AssignmentAction.TRANSFER
            )

            logger.info(f"Conversation {conversation_id} transferred from {source_agent_id} to {target_agent_id}")
            return True
        except Exception as e:
            logger.error(
                f"Failed to transfer conversation {conversation_id} "
                f"from {source_agent_id} to {target_agent_id}: {e}"
            )
            raise

    async def release_conversation(self, conversation_id: str, agent_id: Optional[str]) -> bool:
        """
        Return a conversation to the unassigned pool

        Does not trigger a new auto-assignment.

        Returns:
            False if the conversation does not exist
        """
        try:
            matched = await self.store.update_one(
                COLLECTION_CONVERSATIONS,
                {"conversation_id": conversation_id},
                {"assigned_agent_id": None},
            )
            if not matched:
                logger.warning(f"Conversation {conversation_id} not found for release")
                return False

            await self._log_assignment_action(conversation_id, agent_id, None, AssignmentAction.RELEASE)

            logger.info(f"Conversation {conversation_id} released by {agent_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to release conversation {conversation_id} for {agent_id}: {e}")
            raise

    async def manual_assign(
        self,
        conversation_id: str,
        target_agent_id: str,
        assigner_id: str,
    ) -> bool:
        """
        Owner/admin override of the current assignment

        The audit entry's old value holds the assigner, not the previous
        holder.

        Returns:
            False if the conversation does not exist
        """
        try:
            matched = await self.store.update_one(
                COLLECTION_CONVERSATIONS,
                {"conversation_id": conversation_id},
                {"assigned_agent_id": target_agent_id},
            )
            if not matched:
                logger.warning(f"Conversation {conversation_id} not found for manual assignment")
                return False

            await self._log_assignment_action(
                conversation_id, assigner_id, target_agent_id, AssignmentAction.MANUAL_ASSIGN
            )

            logger.info(f"Conversation {conversation_id} manually assigned to {target_agent_id} by {assigner_id}")
            return True
        except Exception as e:
            logger.error(
                f"Failed to manually assign conversation {conversation_id} "
                f"to {target_agent_id} by {assigner_id}: {e}"
            )
            raise

    async def _log_assignment_action(
        self,
        conversation_id: str,
        from_agent_id: Optional[str],
        to_agent_id: Optional[str],
        action: AssignmentAction,
    ) -> None:
        await self.audit_logger.log(
            entity_type=ENTITY_CONVERSATION_ASSIGNMENT,
            entity_id=str(conversation_id),
            action=action.value,
            old_value={"agent_id": from_agent_id} if from_agent_id else None,
            new_value={"agent_id": to_agent_id} if to_agent_id else None,
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def check_agent_access(self, agent_id: str, conversation_id: str) -> bool:
        """
        Check whether an agent belongs to the conversation's inbox

        Any lookup failure is treated as "no access".
        """
        try:
            row = await self.store.find_one(
                COLLECTION_CONVERSATIONS, {"conversation_id": conversation_id}
            )
            if not row:
                return False
            conversation = Conversation.model_validate(row)

            member = await self.store.find_one(
                COLLECTION_INBOX_MEMBERS,
                {"inbox_id": conversation.inbox_id, "agent_id": agent_id},
            )
            return member is not None
        except Exception as e:
            logger.error(f"Failed to check access of agent {agent_id} to conversation {conversation_id}: {e}")
            return False

    async def get_conversation_assignment(self, conversation_id: str) -> Optional[ConversationAssignment]:
        """
        Get who currently holds a conversation

        Returns:
            Assignment info or None if the conversation does not exist
        """
        try:
            row = await self.store.find_one(
                COLLECTION_CONVERSATIONS, {"conversation_id": conversation_id}
            )
            if not row:
                return None
            conversation = Conversation.model_validate(row)

            assignment = ConversationAssignment(
                conversation_id=conversation.conversation_id,
                inbox_id=conversation.inbox_id,
                assigned_agent_id=conversation.assigned_agent_id,
            )

            if assignment.assigned_agent_id:
                agent = await self.store.find_one(
                    COLLECTION_AGENTS, {"agent_id": assignment.assigned_agent_id}
                )
                if agent:
                    assignment.assigned_agent_name = agent.get("name")
                    assignment.assigned_agent_availability = agent.get("availability")

            return assignment
        except Exception as e:
            logger.error(f"Failed to get assignment of conversation {conversation_id}: {e}")
            raise

    async def get_transferable_agents(
        self,
        inbox_id: str,
        exclude_agent_id: Optional[str] = None,
    ) -> List[AvailableAgent]:
        """
        Get active inbox members a conversation can be transferred to

        Availability is not considered; offline agents are included.

        Args:
            inbox_id: Inbox ID
            exclude_agent_id: Agent to leave out (usually the current holder)

        Returns:
            Agents ordered by name, each with its conversation_count
        """
        try:
            agent_ids = await self._inbox_agent_ids(inbox_id)
            if exclude_agent_id:
                agent_ids = [agent_id for agent_id in agent_ids if agent_id != exclude_agent_id]
            if not agent_ids:
                return []

            agent_docs = await self.store.find(
                COLLECTION_AGENTS,
                {"agent_id": {"$in": agent_ids}, "status": AgentStatus.ACTIVE.value},
                sort=[("name", 1)],
            )
            return await self._with_counts(agent_docs)
        except Exception as e:
            logger.error(f"Failed to get transferable agents for inbox {inbox_id}: {e}")
            raise
