"""
Campaign scheduler contract and the in-process queue registry
"""
from .queue_registry import CampaignScheduler, ActiveQueueRegistry

__all__ = [
    "CampaignScheduler",
    "ActiveQueueRegistry",
]
