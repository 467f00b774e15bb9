from __future__ import annotations

import asyncio
import os
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.deps import get_engine
from config.settings import settings
from notifications.engine import NotificationSyncEngine

router = APIRouter()


async def _sync_state_probe(engine: NotificationSyncEngine, timeout_s: float = 0.50) -> Dict[str, Any]:
    """
    Bounded-time read of the daily sync marker.

    Doubles as the Firestore connectivity check when the marker is persisted there.
    Never writes.
    """
    try:
        t0 = time.monotonic()
        last = await asyncio.wait_for(engine.gate.state.get_last_sync_date(), timeout=timeout_s)
        return {
            "ok": True,
            "latency_ms": int((time.monotonic() - t0) * 1000),
            "last_sync_date": last,
            "synced_today": last == engine.gate.clock.today().isoformat(),
        }
    except Exception as e:
        return {"ok": False, "error_type": type(e).__name__, "message": str(e)}


@router.get("/healthz")
def healthz():
    return {"ok": True, "service": "notifier-sync"}


@router.get("/health")
async def health(engine: NotificationSyncEngine = Depends(get_engine)):
    probe = await _sync_state_probe(engine)
    return {
        "ok": bool(probe["ok"]),
        "service": "notifier-sync",
        "revision": os.getenv("K_REVISION") or "",
        "environment": settings.ENVIRONMENT,
        "state_backend": settings.SYNC_STATE_BACKEND,
        "run_state": engine.state.value,
        "sync_in_flight": engine.gate.in_flight,
        "sync_state": probe,
    }
