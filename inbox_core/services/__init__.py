"""
Core services: conversation assignment and campaign state synchronization
"""
from .audit_logger import AuditLogger
from .assignment_service import ConversationAssignmentService, select_next_agent
from .state_synchronizer import StateSynchronizer

__all__ = [
    "AuditLogger",
    "ConversationAssignmentService",
    "select_next_agent",
    "StateSynchronizer",
]
