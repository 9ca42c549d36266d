"""
Best-effort audit sink.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from inbox_core.database import Store, COLLECTION_AUDIT_LOGS
from inbox_core.models import AuditLogCreate

logger = logging.getLogger(__name__)


class AuditLogger:
    """Persists audit rows; a failed write is logged and never re-raised."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def log(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record an audit entry. Never raises.

        Args:
            entity_type: Kind of entity affected (e.g. conversation_assignment)
            entity_id: Identifier of the entity
            action: Action name
            old_value: State before the action
            new_value: State after the action
        """
        try:
            entry = AuditLogCreate(
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                old_value=old_value,
                new_value=new_value,
            ).model_dump()
            entry["timestamp"] = datetime.utcnow()
            await self.store.insert_one(COLLECTION_AUDIT_LOGS, entry)
        except Exception as e:
            logger.error(
                "Failed to write audit entry %s for %s %s: %s",
                action, entity_type, entity_id, e,
                extra={"entity_type": entity_type, "entity_id": str(entity_id), "action": action},
            )
