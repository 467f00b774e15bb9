import asyncio
import logging

from models.records import EntityType, Severity
from notifications.collapser import DuplicateCollapser
from notifications.orphans import OrphanCollector


def _seed(notifications, entity_type, source_id):
    return notifications.seed(entity_type=entity_type, source_id=source_id, days_remaining=3, priority=Severity.HIGH)


def test_collect_orphans_keeps_only_working_set(notifications, make_sale, make_service):
    _seed(notifications, EntityType.SALE, "s1")
    _seed(notifications, EntityType.SALE, "gone")
    _seed(notifications, EntityType.SERVICE, "v1")
    _seed(notifications, EntityType.SERVICE, "s1")  # same id, other entity type

    removed = asyncio.run(
        OrphanCollector(notifications).collect_orphans([make_sale("s1", 2)], [make_service("v1", 2)])
    )

    assert removed == 2
    remaining = sorted((d["entity_type"], d["source_id"]) for d in notifications.docs.values())
    assert remaining == [("sale", "s1"), ("service", "v1")]


def test_collect_orphans_swallows_delete_errors(notifications, caplog):
    _seed(notifications, EntityType.SALE, "gone")
    notifications.fail_deletes = True

    with caplog.at_level(logging.ERROR):
        removed = asyncio.run(OrphanCollector(notifications).collect_orphans([], []))

    assert removed == 0
    assert any(r.getMessage() == "orphan_delete_failed" for r in caplog.records)


def test_collapse_keeps_index_zero(notifications):
    ids = [_seed(notifications, EntityType.SALE, "s1") for _ in range(3)]

    async def scenario():
        dupes = await notifications.find_by_source(EntityType.SALE, "s1")
        return await DuplicateCollapser(notifications).collapse(dupes)

    assert asyncio.run(scenario()) == 2
    assert list(notifications.docs) == [ids[0]]


def test_scheduled_collapse_failure_is_logged_not_raised(notifications, caplog):
    _seed(notifications, EntityType.SALE, "s1")
    _seed(notifications, EntityType.SALE, "s1")
    notifications.fail_deletes = True
    collapser = DuplicateCollapser(notifications)

    async def scenario():
        dupes = await notifications.find_by_source(EntityType.SALE, "s1")
        collapser.schedule(dupes)
        await collapser.drain()

    with caplog.at_level(logging.ERROR):
        asyncio.run(scenario())

    assert collapser.pending == 0
    assert len(notifications.docs) == 2
    assert any(r.getMessage() == "duplicate_collapse_failed" for r in caplog.records)
