from __future__ import annotations

import logging
from typing import Dict, List, Set

from models.records import EntityType, PrimaryRecord
from notifications.collapser import NotificationStore

log = logging.getLogger("notifier.sync.orphans")


class OrphanCollector:
    """
    Deletes notifications whose source is no longer in the working set.

    Best-effort cleanup: a stale notification surviving one more day is cosmetic,
    so every failure here is logged and swallowed.
    """

    def __init__(self, store: NotificationStore):
        self.store = store

    async def collect_orphans(self, active_sales: List[PrimaryRecord], active_services: List[PrimaryRecord]) -> int:
        valid: Dict[EntityType, Set[str]] = {
            EntityType.SALE: {r.id for r in active_sales},
            EntityType.SERVICE: {r.id for r in active_services},
        }
        removed = 0
        for entity_type, source_ids in valid.items():
            try:
                # Not horizon-filtered: deactivated sources have left the window entirely.
                existing = await self.store.list_by_entity(entity_type)
            except Exception as e:
                log.error(
                    "orphan_scan_failed",
                    extra={"extra": {"entity_type": entity_type.value, "error_type": type(e).__name__, "message": str(e)}},
                    exc_info=True,
                )
                continue

            for n in existing:
                if n.source_id in source_ids:
                    continue
                try:
                    await self.store.delete(n.id)
                    removed += 1
                    log.info(
                        "orphan_notification_removed",
                        extra={"extra": {"notification_id": n.id, "entity_type": entity_type.value, "source_id": n.source_id}},
                    )
                except Exception as e:
                    log.error(
                        "orphan_delete_failed",
                        extra={"extra": {"notification_id": n.id, "error_type": type(e).__name__, "message": str(e)}},
                        exc_info=True,
                    )
        return removed
