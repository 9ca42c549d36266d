"""
Inbox models
"""
from pydantic import BaseModel
from typing import Optional


class Inbox(BaseModel):
    """Routing destination for one communication channel"""
    inbox_id: str
    name: Optional[str] = None
    enable_auto_assignment: bool = False
    max_conversations_per_agent: Optional[int] = None
    # Round-robin cursor
    last_assigned_agent_id: Optional[str] = None


class InboxMember(BaseModel):
    """Agent membership in an inbox"""
    inbox_id: str
    agent_id: str
