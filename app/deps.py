from __future__ import annotations

from functools import lru_cache

from google.cloud.firestore import AsyncClient

from notifications.engine import NotificationSyncEngine, build_engine
from repos.notification_repo import NotificationRepository
from storage.firestore_client import get_firestore_client


@lru_cache(maxsize=1)
def _db() -> AsyncClient:
    return get_firestore_client()


@lru_cache(maxsize=1)
def _engine() -> NotificationSyncEngine:
    # One engine per process: the single-flight flag lives on it.
    return build_engine(db=_db())


# async so the Firestore async client is created on the serving event loop
async def get_engine() -> NotificationSyncEngine:
    return _engine()


async def get_notification_repo() -> NotificationRepository:
    return NotificationRepository(db=_db())
