"""
Pydantic models for data validation
"""
from .agent import Agent, AvailableAgent, AgentAvailability, AgentStatus
from .inbox import Inbox, InboxMember
from .conversation import Conversation, ConversationAssignment, ConversationStatus
from .audit_log import (
    AuditLogCreate,
    AssignmentAction,
    ENTITY_CONVERSATION_ASSIGNMENT,
)
from .campaign import (
    Campaign,
    CampaignStatus,
    TERMINAL_STATUSES,
    QueueSnapshot,
    QueueProgress,
    QueueStats,
    RestoredCampaign,
)
from .inconsistency import Inconsistency, InconsistencyType

__all__ = [
    "Agent",
    "AvailableAgent",
    "AgentAvailability",
    "AgentStatus",
    "Inbox",
    "InboxMember",
    "Conversation",
    "ConversationAssignment",
    "ConversationStatus",
    "AuditLogCreate",
    "AssignmentAction",
    "ENTITY_CONVERSATION_ASSIGNMENT",
    "Campaign",
    "CampaignStatus",
    "TERMINAL_STATUSES",
    "QueueSnapshot",
    "QueueProgress",
    "QueueStats",
    "RestoredCampaign",
    "Inconsistency",
    "InconsistencyType",
]
