from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from utils.clock import Clock

log = logging.getLogger("notifier.sync.gate")


class SyncStateStore(Protocol):
    async def get_last_sync_date(self) -> Optional[str]: ...

    async def set_last_sync_date(self, day: str) -> None: ...

    async def clear(self) -> None: ...


class SchedulerGate:
    """
    Owns the only shared scheduling state of the engine:

      - the persisted "already synced today" marker (local calendar date, ISO string)
      - the in-process single-flight flag

    try_acquire() checks and sets the flag without awaiting in between, so on a
    single event loop exactly one of several concurrent callers wins. The flag
    remembers the task holding it; clear_lock() only drops a lock whose holder
    is gone, so a forced run never overlaps a live pass.
    """

    def __init__(self, state: SyncStateStore, clock: Optional[Clock] = None):
        self.state = state
        self.clock = clock or Clock()
        self._in_flight = False
        self._generation = 0
        self._owner: Optional[asyncio.Task] = None

    def _today_key(self) -> str:
        return self.clock.today().isoformat()

    async def should_run(self, force: bool = False) -> bool:
        if force:
            return True
        last = await self.state.get_last_sync_date()
        return last != self._today_key()

    async def mark_run(self) -> None:
        await self.state.set_last_sync_date(self._today_key())

    async def clear_run(self) -> None:
        await self.state.clear()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def generation(self) -> int:
        return self._generation

    def try_acquire(self) -> bool:
        if self._in_flight:
            return False
        self._in_flight = True
        self._generation += 1
        try:
            self._owner = asyncio.current_task()
        except RuntimeError:  # no running loop
            self._owner = None
        return True

    def release(self, generation: Optional[int] = None) -> None:
        # A run whose lock was cleared by force_sync must not release the forced run's lock.
        if generation is not None and generation != self._generation:
            return
        self._in_flight = False
        self._owner = None

    def holder_alive(self) -> bool:
        return self._in_flight and self._owner is not None and not self._owner.done()

    def clear_lock(self) -> bool:
        """Drop a stuck lock. Returns False, leaving the lock alone, while its holder still runs."""
        if self.holder_alive():
            return False
        if self._in_flight:
            log.warning("sync_lock_cleared", extra={"extra": {"generation": self._generation}})
        self._in_flight = False
        self._owner = None
        return True
