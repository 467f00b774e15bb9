from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from google.cloud.firestore import AsyncClient

from config.settings import settings
from models.records import EntityType
from notifications.collapser import DuplicateCollapser, NotificationStore
from notifications.fetcher import SourceFetcher, SourceStore, WorkingSet
from notifications.orphans import OrphanCollector
from notifications.reconciler import ReconcileOutcome, Reconciler
from notifications.scheduler import SchedulerGate, SyncStateStore
from ops.metrics import Stopwatch
from repos.notification_repo import NotificationRepository
from repos.source_repo import SourceRepository
from repos.sync_state_repo import InMemorySyncStateRepository, SyncStateRepository
from storage.firestore_client import get_firestore_client
from utils.clock import Clock
from utils.log_context import bind_sync_id, reset_sync_id

log = logging.getLogger("notifier.sync.engine")


class RunState(str, Enum):
    IDLE = "idle"
    GATING = "gating"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    COLLECTING_ORPHANS = "collecting_orphans"


class SourceFetchError(RuntimeError):
    """The primary-record query failed; the only error a sync pass surfaces to callers."""


@dataclass
class SyncReport:
    sync_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    ran: bool = False
    forced: bool = False
    skip_reason: str = ""
    sales: int = 0
    services: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    orphans_removed: int = 0
    rolled_back: bool = False
    duration_ms: int = 0
    stage_ms: Dict[str, int] = field(default_factory=dict)

    def count(self, outcome: ReconcileOutcome) -> None:
        if outcome == ReconcileOutcome.CREATED:
            self.created += 1
        elif outcome == ReconcileOutcome.UPDATED:
            self.updated += 1
        elif outcome == ReconcileOutcome.UNCHANGED:
            self.unchanged += 1
        elif outcome == ReconcileOutcome.SKIPPED:
            self.skipped += 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class NotificationSyncEngine:
    """
    Run coordinator: gate -> fetch -> reconcile each record -> collect orphans.

    Only a failed source fetch raises. Per-record failures are counted and roll the
    daily marker back so the next trigger retries the whole pass.
    """

    def __init__(
        self,
        gate: SchedulerGate,
        fetcher: SourceFetcher,
        reconciler: Reconciler,
        orphans: OrphanCollector,
        collapser: DuplicateCollapser,
    ):
        self.gate = gate
        self.fetcher = fetcher
        self.reconciler = reconciler
        self.orphans = orphans
        self.collapser = collapser
        self.state = RunState.IDLE

    @classmethod
    def build(
        cls,
        sources: SourceStore,
        notifications: NotificationStore,
        sync_state: SyncStateStore,
        clock: Optional[Clock] = None,
        horizon_days: Optional[int] = None,
    ) -> "NotificationSyncEngine":
        clock = clock or Clock()
        collapser = DuplicateCollapser(notifications)
        return cls(
            gate=SchedulerGate(sync_state, clock=clock),
            fetcher=SourceFetcher(sources, clock=clock, horizon_days=horizon_days),
            reconciler=Reconciler(notifications, collapser, clock=clock),
            orphans=OrphanCollector(notifications),
            collapser=collapser,
        )

    def _enter(self, state: RunState) -> None:
        log.debug("sync_state", extra={"extra": {"from": self.state.value, "to": state.value}})
        self.state = state

    async def _rollback_marker(self, report: SyncReport) -> None:
        try:
            await self.gate.clear_run()
            report.rolled_back = True
        except Exception as e:
            log.error(
                "sync_marker_rollback_failed",
                extra={"extra": {"error_type": type(e).__name__, "message": str(e)}},
                exc_info=True,
            )

    def _skip(self, report: SyncReport, reason: str, gating: bool) -> SyncReport:
        report.skip_reason = reason
        if gating and not self.gate.in_flight:
            self._enter(RunState.IDLE)
        log.info("sync_skipped", extra={"extra": {"sync_id": report.sync_id, "reason": reason}})
        return report

    async def sync(self, force: bool = False) -> SyncReport:
        report = SyncReport(forced=force)

        # The run state belongs to the pass holding the lock; callers turned away leave it alone.
        gating = not self.gate.in_flight
        if gating:
            self._enter(RunState.GATING)
        try:
            due = await self.gate.should_run(force)
        except Exception as e:
            log.error(
                "sync_error",
                extra={
                    "extra": {
                        "sync_id": report.sync_id,
                        "stage": "gate",
                        "error_type": type(e).__name__,
                        "message": str(e),
                    }
                },
                exc_info=True,
            )
            if gating and not self.gate.in_flight:
                self._enter(RunState.IDLE)
            raise SourceFetchError(f"sync_state_unavailable: {e}") from e
        if not due:
            return self._skip(report, "already_synced_today", gating)
        if not self.gate.try_acquire():
            return self._skip(report, "sync_in_flight", gating)

        generation = self.gate.generation
        token = bind_sync_id(report.sync_id)
        sw = Stopwatch()
        try:
            report.ran = True
            working = await self._fetch(report)
            sw.lap("fetch")

            self._enter(RunState.RECONCILING)
            await self._reconcile_all(working, force, report)
            sw.lap("reconcile")

            self._enter(RunState.COLLECTING_ORPHANS)
            report.orphans_removed = await self.orphans.collect_orphans(working.sales, working.services)
            sw.lap("orphans")

            if report.failed:
                # Partial data is already visible; only make sure the next load retries.
                await self._rollback_marker(report)
            return report
        finally:
            await self.collapser.drain()
            self.gate.release(generation)
            if generation == self.gate.generation:
                self._enter(RunState.IDLE)
            report.duration_ms = sw.ms()
            report.stage_ms = dict(sw.laps)
            log.info("sync_run_metrics", extra={"extra": report.to_dict()})
            reset_sync_id(token)

    async def _fetch(self, report: SyncReport) -> WorkingSet:
        self._enter(RunState.FETCHING)
        try:
            # Optimistic: late callers see "already synced today" while this pass is in flight.
            await self.gate.mark_run()
            working = await self.fetcher.fetch_working_set()
        except Exception as e:
            log.error(
                "sync_error",
                extra={
                    "extra": {
                        "stage": "fetch",
                        "error_type": type(e).__name__,
                        "message": str(e),
                    }
                },
                exc_info=True,
            )
            await self._rollback_marker(report)
            raise SourceFetchError(f"source_fetch_failed: {e}") from e
        report.sales = len(working.sales)
        report.services = len(working.services)
        return working

    async def _reconcile_all(self, working: WorkingSet, force: bool, report: SyncReport) -> None:
        for record in working.records():
            try:
                outcome = await self.reconciler.reconcile(record, force=force)
            except Exception as e:
                report.failed += 1
                log.error(
                    "reconcile_error",
                    extra={
                        "extra": {
                            "entity_type": EntityType(record.entity_type).value,
                            "source_id": record.id,
                            "error_type": type(e).__name__,
                            "message": str(e),
                        }
                    },
                    exc_info=True,
                )
                continue
            report.count(outcome)

    async def force_sync(self) -> SyncReport:
        """
        Rerun today's pass regardless of the marker. A lock left behind by a dead pass is
        cleared; a live pass is not interrupted and the call reports sync_in_flight.
        """
        if not self.gate.clear_lock():
            return self._skip(SyncReport(forced=True), "sync_in_flight", gating=False)
        try:
            await self.gate.clear_run()
        except Exception as e:
            # Forced passes ignore the marker; mark_run rewrites it once the pass starts.
            log.warning(
                "sync_marker_clear_failed",
                extra={"extra": {"error_type": type(e).__name__, "message": str(e)}},
            )
        return await self.sync(force=True)


def build_engine(db: Optional[AsyncClient] = None, clock: Optional[Clock] = None) -> NotificationSyncEngine:
    """Production wiring over Firestore; SYNC_STATE_BACKEND=memory keeps the marker in-process."""
    db = db or get_firestore_client()
    if settings.SYNC_STATE_BACKEND == "memory":
        sync_state: SyncStateStore = InMemorySyncStateRepository()
    else:
        sync_state = SyncStateRepository(db)
    return NotificationSyncEngine.build(
        sources=SourceRepository(db),
        notifications=NotificationRepository(db),
        sync_state=sync_state,
        clock=clock,
    )
