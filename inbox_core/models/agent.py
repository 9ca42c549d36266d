"""
Agent models
"""
from pydantic import BaseModel
from typing import Optional
from enum import Enum


class AgentAvailability(str, Enum):
    """Agent presence values"""
    ONLINE = "online"
    BUSY = "busy"
    OFFLINE = "offline"


class AgentStatus(str, Enum):
    """Agent account status"""
    ACTIVE = "active"
    INACTIVE = "inactive"


class Agent(BaseModel):
    """Human operator as seen by the routing core"""
    agent_id: str
    name: str
    availability: AgentAvailability = AgentAvailability.OFFLINE
    status: AgentStatus = AgentStatus.ACTIVE
    avatar_url: Optional[str] = None


class AvailableAgent(Agent):
    """Agent annotated with its current open-conversation load"""
    conversation_count: int = 0
