from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Protocol, Sequence, Set

from models.records import EntityType, Notification

log = logging.getLogger("notifier.sync.collapser")


class NotificationStore(Protocol):
    async def list_by_entity(self, entity_type: EntityType) -> List[Notification]: ...

    async def find_by_source(self, entity_type: EntityType, source_id: str) -> List[Notification]: ...

    async def create(self, notification: Notification) -> str: ...

    async def update(self, notification_id: str, patch: Dict[str, Any]) -> None: ...

    async def delete(self, notification_id: str) -> None: ...


class DuplicateCollapser:
    """
    Removes redundant notifications for one source, keeping index 0.

    Runs as background tasks off the reconciliation path; failures are logged from
    the task's done-callback and never propagate.
    """

    def __init__(self, store: NotificationStore):
        self.store = store
        self._tasks: Set[asyncio.Task] = set()

    async def collapse(self, duplicates: Sequence[Notification]) -> int:
        if len(duplicates) < 2:
            return 0
        keep = duplicates[0]
        removed = 0
        for n in duplicates[1:]:
            await self.store.delete(n.id)
            removed += 1
        log.info(
            "duplicates_collapsed",
            extra={
                "extra": {
                    "entity_type": keep.entity_type,
                    "source_id": keep.source_id,
                    "kept_id": keep.id,
                    "removed": removed,
                }
            },
        )
        return removed

    def schedule(self, duplicates: Sequence[Notification]) -> asyncio.Task:
        task = asyncio.create_task(self.collapse(list(duplicates)))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(
                "duplicate_collapse_failed",
                extra={"extra": {"error_type": type(exc).__name__, "message": str(exc)}},
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
