"""
Bulk campaign models and the scheduler's in-memory queue snapshot
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from enum import Enum


class CampaignStatus(str, Enum):
    """Campaign lifecycle states"""
    SCHEDULED = "scheduled"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


# Never written by the synchronizer, only read
TERMINAL_STATUSES = (
    CampaignStatus.COMPLETED.value,
    CampaignStatus.CANCELLED.value,
    CampaignStatus.FAILED.value,
)


class Campaign(BaseModel):
    """Persisted bulk-send job"""
    campaign_id: str
    name: Optional[str] = None
    status: CampaignStatus = CampaignStatus.SCHEDULED
    current_index: int = 0
    sent_count: int = 0
    failed_count: int = 0
    processing_lock: Optional[str] = None
    lock_acquired_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}


class QueueStats(BaseModel):
    """Delivery counters of a running queue"""
    sent: int = 0
    failed: int = 0


class QueueProgress(BaseModel):
    """Position of a running queue"""
    current_index: int = 0
    stats: QueueStats = Field(default_factory=QueueStats)


class QueueSnapshot(BaseModel):
    """Scheduler's live view of one campaign"""
    campaign_id: str
    status: str
    progress: QueueProgress = Field(default_factory=QueueProgress)


class RestoredCampaign(BaseModel):
    """Campaign demoted to paused during startup recovery"""
    id: str
    name: Optional[str] = None
    previous_status: Optional[str] = None
    new_status: str = CampaignStatus.PAUSED.value
