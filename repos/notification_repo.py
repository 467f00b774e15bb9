from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from google.cloud.firestore import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError

from models.records import EntityType, Notification
from models.schema import COL_NOTIFICATIONS, F_ENTITY_TYPE, F_READ, F_SOURCE_ID
from storage.firestore_client import get_firestore_client

log = logging.getLogger("notifier.repos.notifications")

# Firestore caps a write batch at 500 operations.
_BATCH_LIMIT = 500


def _salvage(doc_id: str, data: Dict[str, Any]) -> Optional[Notification]:
    # Identity only, so the engine can still overwrite, collapse or orphan-delete the doc.
    try:
        entity_type = EntityType(data.get("entity_type"))
    except ValueError:
        return None
    source_id = data.get("source_id")
    if not isinstance(source_id, str) or not source_id:
        return None
    return Notification(
        id=doc_id,
        entity_type=entity_type,
        source_id=source_id,
        read=data.get("read") is True,
        highlighted=data.get("highlighted") is True,
    )


def notification_from_document(doc_id: str, data: Dict[str, Any]) -> Optional[Notification]:
    """
    Legacy or hand-edited docs (e.g. dashboard-era "critica" priorities) come back in
    salvaged form when their entity type and source id are readable, else as None.
    """
    try:
        return Notification.model_validate({**data, "id": doc_id})
    except ValidationError as e:
        salvaged = _salvage(doc_id, data)
        log.warning(
            "notification_doc_invalid",
            extra={"extra": {"notification_id": doc_id, "errors": e.error_count(), "salvaged": salvaged is not None}},
        )
        return salvaged


class NotificationRepository:
    """
    notificaciones/{auto_id}

    The reconciliation engine is the only writer apart from the user-owned
    read/highlighted toggles and explicit per-source cleanup below.
    """

    def __init__(self, db: Optional[AsyncClient] = None):
        self.db = db or get_firestore_client()

    def _col(self):
        return self.db.collection(COL_NOTIFICATIONS)

    async def _collect(self, query) -> List[Notification]:
        out: List[Notification] = []
        async for snap in query.stream():
            n = notification_from_document(snap.id, snap.to_dict() or {})
            if n is not None:
                out.append(n)
        return out

    async def list_all(self, limit: int = 5000) -> List[Notification]:
        return await self._collect(self._col().limit(limit))

    async def list_by_entity(self, entity_type: EntityType) -> List[Notification]:
        return await self._collect(self._col().where(filter=FieldFilter(F_ENTITY_TYPE, "==", entity_type.value)))

    async def find_by_source(self, entity_type: EntityType, source_id: str) -> List[Notification]:
        query = (
            self._col()
            .where(filter=FieldFilter(F_ENTITY_TYPE, "==", entity_type.value))
            .where(filter=FieldFilter(F_SOURCE_ID, "==", source_id))
        )
        return await self._collect(query)

    async def create(self, notification: Notification) -> str:
        _, ref = await self._col().add(notification.to_document())
        return ref.id

    async def update(self, notification_id: str, patch: Dict[str, Any]) -> None:
        await self._col().document(notification_id).update(patch)

    async def delete(self, notification_id: str) -> None:
        await self._col().document(notification_id).delete()

    # -------- User-owned state --------
    async def _set_flag(self, notification_id: str, field: str, value: bool) -> bool:
        ref = self._col().document(notification_id)
        snap = await ref.get()
        if not snap.exists:
            return False
        await ref.update({field: value})
        return True

    async def set_read(self, notification_id: str, read: bool) -> bool:
        return await self._set_flag(notification_id, "read", read)

    async def set_highlighted(self, notification_id: str, highlighted: bool) -> bool:
        return await self._set_flag(notification_id, "highlighted", highlighted)

    async def mark_all_read(self) -> int:
        query = self._col().where(filter=FieldFilter(F_READ, "==", False))
        updated = 0
        batch = self.db.batch()
        pending = 0
        async for snap in query.stream():
            batch.update(snap.reference, {F_READ: True})
            pending += 1
            if pending == _BATCH_LIMIT:
                await batch.commit()
                updated += pending
                batch = self.db.batch()
                pending = 0
        if pending:
            await batch.commit()
            updated += pending
        return updated

    async def delete_one(self, notification_id: str) -> bool:
        ref = self._col().document(notification_id)
        snap = await ref.get()
        if not snap.exists:
            return False
        await ref.delete()
        return True

    async def delete_by_source(self, entity_type: EntityType, source_id: str) -> int:
        """Called when a sale or service is deleted or renewed upstream."""
        removed = 0
        for n in await self.find_by_source(entity_type, source_id):
            await self.delete(n.id)
            removed += 1
        return removed

    async def counts(self) -> Dict[str, int]:
        items = await self.list_all()
        return summarize_counts(items)


def summarize_counts(items: List[Notification]) -> Dict[str, int]:
    return {
        "total": len(items),
        "sales": sum(1 for n in items if n.entity_type == EntityType.SALE.value),
        "services": sum(1 for n in items if n.entity_type == EntityType.SERVICE.value),
        "unread": sum(1 for n in items if not n.read),
        "highlighted": sum(1 for n in items if n.highlighted),
    }
