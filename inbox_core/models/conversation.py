"""
Conversation models
"""
from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from enum import Enum


class ConversationStatus(str, Enum):
    """Conversation status values"""
    OPEN = "open"
    PENDING = "pending"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


class Conversation(BaseModel):
    """Unit of work routed to agents"""
    conversation_id: str
    inbox_id: str
    assigned_agent_id: Optional[str] = None
    status: ConversationStatus = ConversationStatus.OPEN
    last_message_at: Optional[datetime] = None

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}


class ConversationAssignment(BaseModel):
    """Current assignment of a conversation, with the holder's presence"""
    conversation_id: str
    inbox_id: Optional[str] = None
    assigned_agent_id: Optional[str] = None
    assigned_agent_name: Optional[str] = None
    assigned_agent_availability: Optional[str] = None
