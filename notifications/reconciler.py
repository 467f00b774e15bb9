from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from models.records import EntityType, Notification, PrimaryRecord, Severity
from notifications.collapser import DuplicateCollapser, NotificationStore
from notifications.priority import escalated, priority_for
from notifications.titles import render_message, render_title
from utils.clock import Clock

log = logging.getLogger("notifier.sync.reconciler")


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


class ReconcileError(Exception):
    def __init__(self, entity_type: EntityType, source_id: str, cause: BaseException):
        super().__init__(f"reconcile_failed:{entity_type.value}:{source_id}: {cause}")
        self.entity_type = entity_type
        self.source_id = source_id
        self.cause = cause


class Reconciler:
    def __init__(self, store: NotificationStore, collapser: DuplicateCollapser, clock: Optional[Clock] = None):
        self.store = store
        self.collapser = collapser
        self.clock = clock or Clock()

    async def reconcile(self, record: PrimaryRecord, force: bool = False) -> ReconcileOutcome:
        """
        Bring the notification for one source record in line with it.

        Missing expiration dates are upstream data issues: skipped with a warning, not
        raised. Anything else that goes wrong surfaces as ReconcileError.
        """
        entity_type = EntityType(record.entity_type)
        if record.expiration_date is None:
            log.warning(
                "source_missing_expiration",
                extra={"extra": {"entity_type": entity_type.value, "source_id": record.id}},
            )
            return ReconcileOutcome.SKIPPED
        try:
            return await self._upsert(entity_type, record, force)
        except Exception as e:
            raise ReconcileError(entity_type, record.id, e) from e

    def _refreshed_fields(self, record: PrimaryRecord, days: int, priority: Severity, now: datetime) -> Dict[str, Any]:
        # Not user-owned: rewritten from the source on every write.
        return {
            "days_remaining": days,
            "priority": priority.value,
            "title": render_title(days, EntityType(record.entity_type)),
            "message": render_message(record),
            "event_date": record.expiration_date,
            "display": record.display_fields(),
            "updated_at": now,
        }

    async def _upsert(self, entity_type: EntityType, record: PrimaryRecord, force: bool) -> ReconcileOutcome:
        days = self.clock.days_until(record.expiration_date)
        new_priority = priority_for(days)

        matches = await self.store.find_by_source(entity_type, record.id)
        if len(matches) > 1:
            log.warning(
                "duplicate_notifications_found",
                extra={"extra": {"entity_type": entity_type.value, "source_id": record.id, "count": len(matches)}},
            )
            self.collapser.schedule(matches)

        now = self.clock.now()
        fields = self._refreshed_fields(record, days, new_priority, now)

        if not matches:
            notification = Notification(
                entity_type=entity_type,
                source_id=record.id,
                read=False,
                highlighted=False,
                created_at=now,
                **fields,
            )
            notification_id = await self.store.create(notification)
            log.info(
                "notification_created",
                extra={
                    "extra": {
                        "notification_id": notification_id,
                        "entity_type": entity_type.value,
                        "source_id": record.id,
                        "days_remaining": days,
                        "priority": new_priority.value,
                    }
                },
            )
            return ReconcileOutcome.CREATED

        current = matches[0]
        if not force and current.days_remaining == days:
            return ReconcileOutcome.UNCHANGED

        priority_rose = current.priority is not None and escalated(current.priority, new_priority)
        patch = {
            **fields,
            "read": False if priority_rose else current.read,
            "highlighted": current.highlighted,
        }
        await self.store.update(current.id, patch)
        log.info(
            "notification_updated",
            extra={
                "extra": {
                    "notification_id": current.id,
                    "entity_type": entity_type.value,
                    "source_id": record.id,
                    "days_remaining": days,
                    "priority": new_priority.value,
                    "previous_priority": str(current.priority),
                    "read_reset": priority_rose and current.read,
                    "forced": force,
                }
            },
        )
        return ReconcileOutcome.UPDATED
