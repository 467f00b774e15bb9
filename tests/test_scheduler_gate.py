import asyncio

from notifications.scheduler import SchedulerGate
from repos.sync_state_repo import InMemorySyncStateRepository


def test_should_run_until_marked_for_today(clock):
    state = InMemorySyncStateRepository()
    gate = SchedulerGate(state, clock=clock)

    async def scenario():
        assert await gate.should_run() is True
        await gate.mark_run()
        assert state.last_sync_date == "2026-10-18"
        assert await gate.should_run() is False
        assert await gate.should_run(force=True) is True
        await gate.clear_run()
        assert await gate.should_run() is True

    asyncio.run(scenario())


def test_marker_from_previous_day_allows_run(clock):
    gate = SchedulerGate(InMemorySyncStateRepository("2026-10-17"), clock=clock)
    assert asyncio.run(gate.should_run()) is True


def test_try_acquire_is_single_flight(clock):
    gate = SchedulerGate(InMemorySyncStateRepository(), clock=clock)
    assert gate.try_acquire() is True
    assert gate.try_acquire() is False
    gate.release()
    assert gate.try_acquire() is True


def test_stale_release_does_not_drop_newer_lock(clock):
    gate = SchedulerGate(InMemorySyncStateRepository(), clock=clock)
    assert gate.try_acquire()
    stale = gate.generation
    gate.clear_lock()
    assert gate.try_acquire()

    gate.release(stale)
    assert gate.in_flight is True
    gate.release(gate.generation)
    assert gate.in_flight is False


def test_clear_lock_leaves_a_live_holder_alone(clock):
    gate = SchedulerGate(InMemorySyncStateRepository(), clock=clock)

    async def scenario():
        assert gate.try_acquire()
        assert gate.holder_alive() is True
        assert gate.clear_lock() is False
        assert gate.in_flight is True
        gate.release(gate.generation)

    asyncio.run(scenario())
    assert gate.in_flight is False


def test_clear_lock_drops_lock_of_finished_holder(clock):
    gate = SchedulerGate(InMemorySyncStateRepository(), clock=clock)

    async def leak():
        gate.try_acquire()  # holder exits without releasing

    asyncio.run(leak())
    assert gate.in_flight is True
    assert gate.holder_alive() is False
    assert gate.clear_lock() is True
    assert gate.in_flight is False
