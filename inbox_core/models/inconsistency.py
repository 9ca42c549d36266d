"""
Drift findings between persisted campaigns and the scheduler
"""
from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Union
from enum import Enum


class InconsistencyType(str, Enum):
    """Kinds of drift the synchronizer knows how to correct"""
    RUNNING_NOT_IN_MEMORY = "RUNNING_NOT_IN_MEMORY"
    STATUS_MISMATCH = "STATUS_MISMATCH"
    STALE_LOCK = "STALE_LOCK"


class Inconsistency(BaseModel):
    """
    A single finding, self-contained enough to be corrected without
    another lookup.

    ``type`` also accepts names this version does not know; such findings
    are skipped by auto-correction.
    """
    type: Union[InconsistencyType, str]
    campaign_id: str
    name: Optional[str] = None
    db_status: Optional[str] = None
    memory_status: Optional[str] = None
    lock_acquired_at: Optional[datetime] = None
    suggestion: Optional[str] = None

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}

    @property
    def kind(self) -> Optional[InconsistencyType]:
        """Known finding type, or None"""
        try:
            return InconsistencyType(self.type)
        except ValueError:
            return None
