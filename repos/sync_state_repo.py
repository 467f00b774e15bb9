from __future__ import annotations

from typing import Optional

from google.cloud import firestore
from google.cloud.firestore import AsyncClient

from models.schema import COL_SYSTEM, DOC_NOTIFICATION_SYNC_STATE
from storage.firestore_client import get_firestore_client


class SyncStateRepository:
    """system/notification_sync_state: last local calendar date a sync pass was started."""

    def __init__(self, db: Optional[AsyncClient] = None):
        self.db = db or get_firestore_client()

    def _ref(self):
        return self.db.collection(COL_SYSTEM).document(DOC_NOTIFICATION_SYNC_STATE)

    async def get_last_sync_date(self) -> Optional[str]:
        snap = await self._ref().get()
        if not snap.exists:
            return None
        return (snap.to_dict() or {}).get("last_sync_date") or None

    async def set_last_sync_date(self, day: str) -> None:
        await self._ref().set({"last_sync_date": day, "updated_at": firestore.SERVER_TIMESTAMP}, merge=True)

    async def clear(self) -> None:
        await self._ref().set({"last_sync_date": None, "updated_at": firestore.SERVER_TIMESTAMP}, merge=True)


class InMemorySyncStateRepository:
    """Process-local marker for SYNC_STATE_BACKEND=memory (single instance deployments, tests)."""

    def __init__(self, last_sync_date: Optional[str] = None):
        self.last_sync_date = last_sync_date

    async def get_last_sync_date(self) -> Optional[str]:
        return self.last_sync_date

    async def set_last_sync_date(self, day: str) -> None:
        self.last_sync_date = day

    async def clear(self) -> None:
        self.last_sync_date = None
