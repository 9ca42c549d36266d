"""
In-process view of the campaign queues that are actually being sent.

The bulk sender registers a queue when it starts working on a campaign,
updates its progress while sending and removes it when the campaign stops.
The state synchronizer treats this registry as the source of truth for
"is this campaign running right now".
"""
import logging
from typing import Dict, List, Optional, Protocol

from inbox_core.models import QueueSnapshot, QueueProgress, QueueStats

logger = logging.getLogger(__name__)


class CampaignScheduler(Protocol):
    """What the synchronizer needs from a campaign scheduler"""

    def get_active_queues(self) -> List[QueueSnapshot]: ...

    def get_active_queue(self, campaign_id: str) -> Optional[QueueSnapshot]: ...


class ActiveQueueRegistry:
    """Dictionary-backed :class:`CampaignScheduler`"""

    def __init__(self) -> None:
        self._queues: Dict[str, QueueSnapshot] = {}

    def register(
        self,
        campaign_id: str,
        status: str = "running",
        current_index: int = 0,
        sent: int = 0,
        failed: int = 0,
    ) -> QueueSnapshot:
        snapshot = QueueSnapshot(
            campaign_id=campaign_id,
            status=status,
            progress=QueueProgress(current_index=current_index, stats=QueueStats(sent=sent, failed=failed)),
        )
        self._queues[campaign_id] = snapshot
        logger.debug(f"Queue registered for campaign {campaign_id} ({status})")
        return snapshot

    def update(
        self,
        campaign_id: str,
        status: Optional[str] = None,
        current_index: Optional[int] = None,
        sent: Optional[int] = None,
        failed: Optional[int] = None,
    ) -> QueueSnapshot:
        """
        Update a registered queue in place

        Raises:
            KeyError: If the campaign has no active queue
        """
        snapshot = self._queues[campaign_id]
        if status is not None:
            snapshot.status = status
        if current_index is not None:
            snapshot.progress.current_index = current_index
        if sent is not None:
            snapshot.progress.stats.sent = sent
        if failed is not None:
            snapshot.progress.stats.failed = failed
        return snapshot

    def remove(self, campaign_id: str) -> None:
        if self._queues.pop(campaign_id, None) is not None:
            logger.debug(f"Queue removed for campaign {campaign_id}")

    def get_active_queue(self, campaign_id: str) -> Optional[QueueSnapshot]:
        snapshot = self._queues.get(campaign_id)
        return snapshot.model_copy(deep=True) if snapshot else None

    def get_active_queues(self) -> List[QueueSnapshot]:
        return [snapshot.model_copy(deep=True) for snapshot in self._queues.values()]

    def __len__(self) -> int:
        return len(self._queues)
