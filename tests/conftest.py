import asyncio
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Set

import pytest

from models.records import EntityType, Notification, SaleRecord, ServiceRecord
from notifications.engine import NotificationSyncEngine
from repos.notification_repo import notification_from_document, summarize_counts
from repos.sync_state_repo import InMemorySyncStateRepository
from utils.clock import Clock

TODAY = date(2026, 10, 18)


class FixedClock(Clock):
    def __init__(self, today: date, tz_name: str = "UTC"):
        super().__init__(tz_name)
        self._today = today

    def now(self) -> datetime:
        return datetime.combine(self._today, time(12, 0), tzinfo=self.tz)

    def advance(self, days: int = 1) -> None:
        self._today = self._today + timedelta(days=days)


class FakeSourceRepo:
    def __init__(self):
        self.records: Dict[EntityType, Dict[str, Any]] = {EntityType.SALE: {}, EntityType.SERVICE: {}}
        self.active: Set[str] = set()
        self.calls = 0
        self.fail: Optional[Exception] = None

    def add(self, record, active: bool = True):
        self.records[EntityType(record.entity_type)][record.id] = record
        if active:
            self.active.add(record.id)
        return record

    def deactivate(self, source_id: str):
        self.active.discard(source_id)

    async def query_active_expiring(self, entity_type, horizon_end):
        self.calls += 1
        await asyncio.sleep(0)
        if self.fail is not None:
            raise self.fail
        return [
            r
            for r in self.records[entity_type].values()
            if r.id in self.active and (r.expiration_date is None or r.expiration_date < horizon_end)
        ]


class FakeNotificationRepo:
    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.fail_writes_for: Set[str] = set()
        self.fail_deletes = False
        self.fail_list = False
        self.writes = 0
        self._seq = 0

    def _model(self, doc_id: str) -> Optional[Notification]:
        return notification_from_document(doc_id, self.docs[doc_id])

    def _models(self, doc_ids) -> List[Notification]:
        return [n for n in (self._model(i) for i in doc_ids) if n is not None]

    def seed(self, **fields) -> str:
        n = Notification(**fields)
        self._seq += 1
        doc_id = f"seed{self._seq}"
        self.docs[doc_id] = n.to_document()
        return doc_id

    def for_source(self, source_id: str) -> List[Notification]:
        return self._models(i for i, d in self.docs.items() if d.get("source_id") == source_id)

    async def list_all(self, limit: int = 5000):
        return self._models(list(self.docs))[:limit]

    async def list_by_entity(self, entity_type):
        await asyncio.sleep(0)
        if self.fail_list:
            raise RuntimeError("list_failed")
        return self._models(i for i, d in list(self.docs.items()) if d.get("entity_type") == entity_type.value)

    async def find_by_source(self, entity_type, source_id):
        await asyncio.sleep(0)
        return self._models(
            i
            for i, d in list(self.docs.items())
            if d.get("entity_type") == entity_type.value and d.get("source_id") == source_id
        )

    async def create(self, notification):
        await asyncio.sleep(0)
        if notification.source_id in self.fail_writes_for:
            raise RuntimeError("write_failed")
        self._seq += 1
        doc_id = f"n{self._seq}"
        self.docs[doc_id] = notification.to_document()
        self.writes += 1
        return doc_id

    async def update(self, notification_id, patch):
        await asyncio.sleep(0)
        doc = self.docs[notification_id]
        if doc["source_id"] in self.fail_writes_for:
            raise RuntimeError("write_failed")
        doc.update(patch)
        self.writes += 1

    async def delete(self, notification_id):
        await asyncio.sleep(0)
        if self.fail_deletes:
            raise RuntimeError("delete_failed")
        self.docs.pop(notification_id, None)
        self.writes += 1

    async def set_read(self, notification_id, read):
        if notification_id not in self.docs:
            return False
        self.docs[notification_id]["read"] = read
        return True

    async def set_highlighted(self, notification_id, highlighted):
        if notification_id not in self.docs:
            return False
        self.docs[notification_id]["highlighted"] = highlighted
        return True

    async def mark_all_read(self):
        unread = [d for d in self.docs.values() if d.get("read") is False]
        for d in unread:
            d["read"] = True
        return len(unread)

    async def delete_one(self, notification_id):
        return self.docs.pop(notification_id, None) is not None

    async def delete_by_source(self, entity_type, source_id):
        found = await self.find_by_source(entity_type, source_id)
        for n in found:
            await self.delete(n.id)
        return len(found)

    async def counts(self):
        return summarize_counts(await self.list_all())


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def sources():
    return FakeSourceRepo()


@pytest.fixture
def notifications():
    return FakeNotificationRepo()


@pytest.fixture
def sync_state():
    return InMemorySyncStateRepository()


@pytest.fixture
def engine(sources, notifications, sync_state, clock):
    return NotificationSyncEngine.build(
        sources=sources, notifications=notifications, sync_state=sync_state, clock=clock, horizon_days=7
    )


@pytest.fixture
def make_sale(clock):
    def _make(source_id: str, days: Optional[int], **fields) -> SaleRecord:
        expiration = None
        if days is not None:
            expiration = clock.start_of_day(clock.today() + timedelta(days=days)) + timedelta(hours=10)
        fields.setdefault("client_name", "Ana Torres")
        fields.setdefault("service_name", "Netflix")
        return SaleRecord(id=source_id, expiration_date=expiration, **fields)

    return _make


@pytest.fixture
def make_service(clock):
    def _make(source_id: str, days: Optional[int], **fields) -> ServiceRecord:
        expiration = None
        if days is not None:
            expiration = clock.start_of_day(clock.today() + timedelta(days=days)) + timedelta(hours=10)
        fields.setdefault("service_name", "Disney+ Premium")
        fields.setdefault("category_name", "Disney+")
        return ServiceRecord(id=source_id, expiration_date=expiration, **fields)

    return _make
