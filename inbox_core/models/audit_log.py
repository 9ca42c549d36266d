"""
Audit log models
"""
from pydantic import BaseModel
from typing import Optional, Dict, Any
from enum import Enum


class AssignmentAction(str, Enum):
    """Assignment-affecting actions"""
    AUTO_ASSIGN = "auto_assign"
    PICKUP = "pickup"
    TRANSFER = "transfer"
    RELEASE = "release"
    MANUAL_ASSIGN = "manual_assign"


ENTITY_CONVERSATION_ASSIGNMENT = "conversation_assignment"


class AuditLogBase(BaseModel):
    """Base audit log model"""
    entity_type: str
    entity_id: str
    action: str
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None


class AuditLogCreate(AuditLogBase):
    """Model for creating a new audit log"""
    pass

