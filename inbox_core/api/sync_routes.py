"""
Admin routes for campaign state synchronization
"""
from fastapi import APIRouter, Depends, Request
from typing import Any, Dict

from inbox_core.api.dependencies import get_state_synchronizer
from inbox_core.middleware.auth import verify_api_key
from inbox_core.middleware.rate_limiter import limiter, get_rate_limit
from inbox_core.services import StateSynchronizer


router = APIRouter(prefix="/api/campaign-sync", tags=["campaign-sync"])


@router.get("/stats")
@limiter.limit(get_rate_limit("read"))
async def sync_stats(
    request: Request,
    api_key: dict = Depends(verify_api_key),
    synchronizer: StateSynchronizer = Depends(get_state_synchronizer),
) -> Dict[str, Any]:
    """Synchronizer status (running flag, interval, last pass)"""
    return synchronizer.get_stats()


@router.get("/inconsistencies")
@limiter.limit(get_rate_limit("admin"))
async def list_inconsistencies(
    request: Request,
    api_key: dict = Depends(verify_api_key),
    synchronizer: StateSynchronizer = Depends(get_state_synchronizer),
) -> Dict[str, Any]:
    """
    Drift between persisted campaigns and the running queues (read-only)
    """
    inconsistencies = await synchronizer.detect_inconsistencies()
    return {
        "inconsistencies": [i.model_dump(mode="json") for i in inconsistencies],
        "count": len(inconsistencies),
    }


@router.post("/sync")
@limiter.limit(get_rate_limit("admin"))
async def sync_now(
    request: Request,
    api_key: dict = Depends(verify_api_key),
    synchronizer: StateSynchronizer = Depends(get_state_synchronizer),
) -> Dict[str, Any]:
    """Run one sync pass immediately"""
    synced = await synchronizer.sync_state()
    return {"success": True, "synced": synced}


@router.post("/reconcile")
@limiter.limit(get_rate_limit("admin"))
async def reconcile(
    request: Request,
    api_key: dict = Depends(verify_api_key),
    synchronizer: StateSynchronizer = Depends(get_state_synchronizer),
) -> Dict[str, Any]:
    """Detect drift and apply the suggested corrections"""
    result = await synchronizer.reconcile()
    return {"success": True, **result}
