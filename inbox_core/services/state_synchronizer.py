"""
Campaign state synchronization between the scheduler and the database.

- Periodic sync of in-memory queue progress onto persisted campaigns
- Restoration of campaigns that were mid-flight when the process stopped
- Detection and correction of drift (stale locks, status mismatches,
  campaigns marked running without a live queue)

Every write is a plain overwrite of progress/status or a null-out of lock
fields, so any pass can be re-run after a partial failure.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from inbox_core.database import Store, COLLECTION_CAMPAIGNS
from inbox_core.models import (
    Campaign,
    CampaignStatus,
    TERMINAL_STATUSES,
    Inconsistency,
    InconsistencyType,
    QueueSnapshot,
    RestoredCampaign,
)
from inbox_core.scheduling import CampaignScheduler
from inbox_core.utils.periodic import PeriodicTask

logger = logging.getLogger(__name__)


DEFAULT_SYNC_INTERVAL = 30.0
DEFAULT_STALE_LOCK_AFTER = timedelta(minutes=10)


class StateSynchronizer:
    """Keeps persisted campaign status consistent with the scheduler"""

    def __init__(
        self,
        store: Store,
        scheduler: CampaignScheduler,
        sync_interval: float = DEFAULT_SYNC_INTERVAL,
        stale_lock_after: timedelta = DEFAULT_STALE_LOCK_AFTER,
        auto_correct_on_sync: bool = False,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.scheduler = scheduler
        self.sync_interval = sync_interval
        self.stale_lock_after = stale_lock_after
        self.auto_correct_on_sync = auto_correct_on_sync
        self.clock = clock
        self.last_sync_at: Optional[datetime] = None
        self.last_synced_count = 0
        self._periodic = PeriodicTask("campaign-state-sync", self._sync_pass, sync_interval)

        self._correctors: Dict[InconsistencyType, Callable[[Inconsistency], Awaitable[None]]] = {
            InconsistencyType.RUNNING_NOT_IN_MEMORY: self._correct_running_not_in_memory,
            InconsistencyType.STATUS_MISMATCH: self._correct_status_mismatch,
            InconsistencyType.STALE_LOCK: self._correct_stale_lock,
        }

        logger.info(f"StateSynchronizer created (interval {sync_interval}s)")

    @property
    def is_running(self) -> bool:
        return self._periodic.running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_sync(self) -> None:
        """Run a sync pass now and then every ``sync_interval`` seconds."""
        if self.is_running:
            logger.warning("StateSynchronizer already running")
            return

        logger.info("Starting StateSynchronizer")
        self._periodic.start()

    async def stop_sync(self) -> None:
        """Stop the periodic sync."""
        if not self.is_running:
            logger.warning("StateSynchronizer not running")
            return

        logger.info("Stopping StateSynchronizer")
        await self._periodic.stop()

    async def _sync_pass(self) -> None:
        await self.sync_state()
        if self.auto_correct_on_sync:
            await self.reconcile()

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync_state(self) -> int:
        """
        Push every active queue's progress and status to the database

        Returns:
            Number of campaigns written
        """
        logger.debug("Syncing campaign state")

        synced = 0
        for queue in self.scheduler.get_active_queues():
            if await self._sync_campaign_state(queue):
                synced += 1

        self.last_sync_at = self.clock()
        self.last_synced_count = synced
        logger.debug(f"State sync completed: {synced} campaign(s) synced")
        return synced

    async def _sync_campaign_state(self, queue: QueueSnapshot) -> bool:
        progress = queue.progress
        try:
            await self.store.update_one(
                COLLECTION_CAMPAIGNS,
                {"campaign_id": queue.campaign_id},
                {
                    "current_index": progress.current_index,
                    "sent_count": progress.stats.sent,
                    "failed_count": progress.stats.failed,
                    "status": queue.status,
                    "updated_at": self.clock(),
                },
            )
            logger.debug(
                f"Campaign {queue.campaign_id} synced: status={queue.status} "
                f"index={progress.current_index} sent={progress.stats.sent} failed={progress.stats.failed}"
            )
            return True
        except Exception as e:
            logger.error(f"Error syncing campaign {queue.campaign_id} state: {e}")
            return False

    # ------------------------------------------------------------------
    # Startup recovery
    # ------------------------------------------------------------------

    async def restore_running_campaigns(self) -> List[RestoredCampaign]:
        """
        Pause campaigns that were mid-flight when the process stopped

        Matches campaigns marked running, and campaigns holding a lock while
        not in a terminal state. Each is set to paused with its lock cleared
        so an operator can resume it.

        Returns:
            Restored campaigns
        """
        logger.info("Restoring running campaigns after restart")

        rows = await self.store.find(
            COLLECTION_CAMPAIGNS,
            {
                "$or": [
                    {"status": CampaignStatus.RUNNING.value},
                    {
                        "processing_lock": {"$ne": None},
                        "status": {"$nin": list(TERMINAL_STATUSES)},
                    },
                ]
            },
        )

        if not rows:
            logger.info("No campaigns to restore")
            return []

        logger.info(f"Found {len(rows)} campaign(s) to restore")

        restored: List[RestoredCampaign] = []
        for row in rows:
            campaign = Campaign.model_validate(row)
            campaign_id = campaign.campaign_id
            try:
                await self.store.update_one(
                    COLLECTION_CAMPAIGNS,
                    {"campaign_id": campaign_id},
                    {
                        "status": CampaignStatus.PAUSED.value,
                        "processing_lock": None,
                        "lock_acquired_at": None,
                        "updated_at": self.clock(),
                    },
                )
            except Exception as e:
                logger.error(f"Error restoring campaign {campaign_id}: {e}")
                continue

            logger.info(
                f"Campaign {campaign_id} ({campaign.name}) restored as paused, "
                f"was {campaign.status.value}"
            )
            restored.append(
                RestoredCampaign(
                    id=campaign_id,
                    name=campaign.name,
                    previous_status=campaign.status.value,
                )
            )

        logger.info(f"Campaign restoration completed: {len(restored)} restored")
        return restored

    # ------------------------------------------------------------------
    # Drift detection and correction
    # ------------------------------------------------------------------

    async def detect_inconsistencies(self) -> List[Inconsistency]:
        """
        Compare persisted campaigns with the scheduler's queues (read-only)

        Returns:
            Findings of type RUNNING_NOT_IN_MEMORY, STATUS_MISMATCH and
            STALE_LOCK
        """
        logger.debug("Detecting state inconsistencies")
        inconsistencies: List[Inconsistency] = []

        # 1. Running in the database but no live queue
        running = await self.store.find(COLLECTION_CAMPAIGNS, {"status": CampaignStatus.RUNNING.value})
        for campaign in map(Campaign.model_validate, running):
            if self.scheduler.get_active_queue(campaign.campaign_id) is None:
                inconsistencies.append(
                    Inconsistency(
                        type=InconsistencyType.RUNNING_NOT_IN_MEMORY,
                        campaign_id=campaign.campaign_id,
                        name=campaign.name,
                        db_status=campaign.status.value,
                        memory_status=None,
                        suggestion="Mark as paused in database",
                    )
                )

        # 2. Live queue whose status differs from the database
        for queue in self.scheduler.get_active_queues():
            row = await self.store.find_one(COLLECTION_CAMPAIGNS, {"campaign_id": queue.campaign_id})
            if not row:
                continue
            campaign = Campaign.model_validate(row)
            if campaign.status.value != queue.status:
                inconsistencies.append(
                    Inconsistency(
                        type=InconsistencyType.STATUS_MISMATCH,
                        campaign_id=queue.campaign_id,
                        name=campaign.name,
                        db_status=campaign.status.value,
                        memory_status=queue.status,
                        suggestion="Update database to match memory status",
                    )
                )

        # 3. Locks held longer than the staleness threshold
        stale_before = self.clock() - self.stale_lock_after
        stale = await self.store.find(
            COLLECTION_CAMPAIGNS,
            {"processing_lock": {"$ne": None}, "lock_acquired_at": {"$lt": stale_before}},
        )
        for campaign in map(Campaign.model_validate, stale):
            inconsistencies.append(
                Inconsistency(
                    type=InconsistencyType.STALE_LOCK,
                    campaign_id=campaign.campaign_id,
                    name=campaign.name,
                    db_status=campaign.status.value,
                    lock_acquired_at=campaign.lock_acquired_at,
                    suggestion="Clear stale lock",
                )
            )

        if inconsistencies:
            types = sorted({i.kind.value for i in inconsistencies})
            logger.warning(f"{len(inconsistencies)} state inconsistencies detected: {', '.join(types)}")
        else:
            logger.debug("No inconsistencies detected")

        return inconsistencies

    async def auto_correct(self, inconsistencies: List[Inconsistency]) -> int:
        """
        Apply the suggested fix for each finding

        Unknown finding types and failing corrections are logged and
        skipped.

        Returns:
            Number of findings corrected
        """
        logger.info(f"Auto-correcting {len(inconsistencies)} inconsistencies")

        corrected = 0
        for inconsistency in inconsistencies:
            kind = inconsistency.kind
            if kind is None:
                logger.warning(f"Unknown inconsistency type {inconsistency.type} for campaign {inconsistency.campaign_id}")
                continue
            try:
                await self._correctors[kind](inconsistency)
            except Exception as e:
                logger.error(
                    f"Error correcting {kind.value} for campaign {inconsistency.campaign_id}: {e}"
                )
                continue
            corrected += 1

        logger.info(f"Auto-correction completed: {corrected}/{len(inconsistencies)} corrected")
        return corrected

    async def reconcile(self) -> Dict[str, int]:
        """Detect drift and correct it in one go."""
        inconsistencies = await self.detect_inconsistencies()
        corrected = await self.auto_correct(inconsistencies) if inconsistencies else 0
        return {"detected": len(inconsistencies), "corrected": corrected}

    async def _correct_running_not_in_memory(self, inconsistency: Inconsistency) -> None:
        await self.store.update_one(
            COLLECTION_CAMPAIGNS,
            {"campaign_id": inconsistency.campaign_id},
            {"status": CampaignStatus.PAUSED.value, "updated_at": self.clock()},
        )
        logger.info(f"Corrected RUNNING_NOT_IN_MEMORY for campaign {inconsistency.campaign_id}")

    async def _correct_status_mismatch(self, inconsistency: Inconsistency) -> None:
        await self.store.update_one(
            COLLECTION_CAMPAIGNS,
            {"campaign_id": inconsistency.campaign_id},
            {"status": inconsistency.memory_status, "updated_at": self.clock()},
        )
        logger.info(
            f"Corrected STATUS_MISMATCH for campaign {inconsistency.campaign_id}: "
            f"{inconsistency.db_status} -> {inconsistency.memory_status}"
        )

    async def _correct_stale_lock(self, inconsistency: Inconsistency) -> None:
        await self.store.update_one(
            COLLECTION_CAMPAIGNS,
            {"campaign_id": inconsistency.campaign_id},
            {"processing_lock": None, "lock_acquired_at": None, "updated_at": self.clock()},
        )
        logger.info(f"Corrected STALE_LOCK for campaign {inconsistency.campaign_id}")

    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        """Synchronizer status for health/admin endpoints"""
        return {
            "is_running": self.is_running,
            "sync_interval": self.sync_interval,
            "stale_lock_minutes": self.stale_lock_after.total_seconds() / 60,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "last_synced_campaigns": self.last_synced_count,
        }
