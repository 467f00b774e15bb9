from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Protocol

from config.settings import settings
from models.records import EntityType, PrimaryRecord
from ops.metrics import Stopwatch
from utils.clock import Clock

log = logging.getLogger("notifier.sync.fetcher")


class SourceStore(Protocol):
    async def query_active_expiring(self, entity_type: EntityType, horizon_end: datetime) -> List[PrimaryRecord]: ...


@dataclass
class WorkingSet:
    sales: List[PrimaryRecord] = field(default_factory=list)
    services: List[PrimaryRecord] = field(default_factory=list)

    def records(self) -> List[PrimaryRecord]:
        # Fetch order: sales first, then services.
        return [*self.sales, *self.services]


class SourceFetcher:
    def __init__(self, sources: SourceStore, clock: Optional[Clock] = None, horizon_days: Optional[int] = None):
        self.sources = sources
        self.clock = clock or Clock()
        self.horizon_days = settings.NOTIFY_HORIZON_DAYS if horizon_days is None else horizon_days

    def horizon_end(self) -> datetime:
        # Exclusive bound: every record whose local expiration date is <= today + horizon.
        last_day = self.clock.today() + timedelta(days=self.horizon_days)
        return self.clock.start_of_day(last_day + timedelta(days=1))

    async def fetch_working_set(self) -> WorkingSet:
        sw = Stopwatch()
        horizon_end = self.horizon_end()
        # One query per entity type; "expires before horizon_end" already covers overdue records.
        sales = await self.sources.query_active_expiring(EntityType.SALE, horizon_end)
        services = await self.sources.query_active_expiring(EntityType.SERVICE, horizon_end)
        log.info(
            "sync_fetch_metrics",
            extra={
                "extra": {
                    "sales": len(sales),
                    "services": len(services),
                    "horizon_days": self.horizon_days,
                    "horizon_end": horizon_end.isoformat(),
                    "fetch_duration_ms": sw.ms(),
                }
            },
        )
        return WorkingSet(sales=sales, services=services)
