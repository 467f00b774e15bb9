from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.deps import get_engine, get_notification_repo
from models.records import EntityType
from notifications.engine import NotificationSyncEngine
from repos.notification_repo import NotificationRepository

router = APIRouter()
log = logging.getLogger("notifier.routers.notifications")


class ReadBody(BaseModel):
    read: bool


class HighlightedBody(BaseModel):
    highlighted: bool


@router.post("/notifications/sync")
async def notifications_sync(engine: NotificationSyncEngine = Depends(get_engine)):
    report = await engine.sync()
    return {"ok": True, "report": report.to_dict()}


@router.post("/notifications/force_sync")
async def notifications_force_sync(engine: NotificationSyncEngine = Depends(get_engine)):
    report = await engine.force_sync()
    return {"ok": True, "report": report.to_dict()}


@router.get("/notifications")
async def list_notifications(
    entity_type: Optional[EntityType] = None,
    repo: NotificationRepository = Depends(get_notification_repo),
):
    if entity_type is None:
        items = await repo.list_all()
    else:
        items = await repo.list_by_entity(entity_type)
    return {"ok": True, "items": [n.model_dump(mode="json") for n in items]}


@router.get("/notifications/counts")
async def notification_counts(repo: NotificationRepository = Depends(get_notification_repo)):
    return {"ok": True, "counts": await repo.counts()}


@router.post("/notifications/read_all")
async def mark_all_read(repo: NotificationRepository = Depends(get_notification_repo)):
    updated = await repo.mark_all_read()
    log.info("notifications_marked_read", extra={"extra": {"updated": updated}})
    return {"ok": True, "updated": updated}


@router.delete("/notifications/{notification_id}")
async def delete_notification(notification_id: str, repo: NotificationRepository = Depends(get_notification_repo)):
    if not await repo.delete_one(notification_id):
        raise HTTPException(status_code=404, detail="notification_not_found")
    log.info("notification_deleted", extra={"extra": {"notification_id": notification_id}})
    return {"ok": True, "id": notification_id}


@router.post("/notifications/{notification_id}/read")
async def set_read(notification_id: str, body: ReadBody, repo: NotificationRepository = Depends(get_notification_repo)):
    if not await repo.set_read(notification_id, body.read):
        raise HTTPException(status_code=404, detail="notification_not_found")
    return {"ok": True, "id": notification_id, "read": body.read}


@router.post("/notifications/{notification_id}/highlighted")
async def set_highlighted(
    notification_id: str, body: HighlightedBody, repo: NotificationRepository = Depends(get_notification_repo)
):
    if not await repo.set_highlighted(notification_id, body.highlighted):
        raise HTTPException(status_code=404, detail="notification_not_found")
    return {"ok": True, "id": notification_id, "highlighted": body.highlighted}


@router.delete("/notifications/by_source/{entity_type}/{source_id}")
async def delete_by_source(
    entity_type: EntityType, source_id: str, repo: NotificationRepository = Depends(get_notification_repo)
):
    removed = await repo.delete_by_source(entity_type, source_id)
    log.info(
        "notifications_deleted_by_source",
        extra={"extra": {"entity_type": entity_type.value, "source_id": source_id, "removed": removed}},
    )
    return {"ok": True, "removed": removed}
