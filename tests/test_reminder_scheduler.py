"""Tests for the periodic sweep runner."""

import asyncio
from datetime import datetime, timedelta

import pytest

from app.services.adherence_engine import AdherenceEngine
from app.services.reminder_scheduler import ReminderScheduler
from conftest import PATIENT_ID


NOW = datetime(2024, 1, 25, 12, 0, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.mark.asyncio
async def test_run_once_sweeps_at_clock_time(store):
    note = store.add_note(PATIENT_ID)
    store.add_plan_item(note.id, duration=30, start_date=NOW - timedelta(days=3))
    clock = FakeClock(NOW)
    scheduler = ReminderScheduler(AdherenceEngine(store), clock=clock)

    report = await scheduler.run_once()

    assert report.ran_at == NOW
    assert report.reminders[0].missed_days == 4
    assert scheduler.last_report is report

    clock.advance(days=1)
    report = await scheduler.run_once()

    assert report.reminders[0].missed_days == 5


@pytest.mark.asyncio
async def test_tick_is_skipped_while_sweep_runs(store):
    engine = AdherenceEngine(store)
    scheduler = ReminderScheduler(engine, clock=FakeClock(NOW))
    entered = asyncio.Event()
    release = asyncio.Event()
    original = store.list_active_plan_items

    async def slow_list(now):
        entered.set()
        await release.wait()
        return await original(now)

    store.list_active_plan_items = slow_list

    first = asyncio.create_task(scheduler.run_once())
    await entered.wait()

    assert await scheduler.run_once() is None

    release.set()
    assert await first is not None


@pytest.mark.asyncio
async def test_store_failure_is_logged_not_raised(store):
    store.fail_on_list = True
    scheduler = ReminderScheduler(AdherenceEngine(store), clock=FakeClock(NOW))

    assert await scheduler.run_once() is None
    assert scheduler.last_report is None


@pytest.mark.asyncio
async def test_loop_survives_unexpected_sweep_error(store):
    attempts = []
    original = store.list_active_plan_items

    async def flaky_list(now):
        attempts.append(now)
        if len(attempts) == 2:
            raise RuntimeError("malformed note document")
        return await original(now)

    store.list_active_plan_items = flaky_list
    ticks = []
    third_tick = asyncio.Event()

    async def fake_sleep(seconds):
        ticks.append(seconds)
        if len(ticks) > 3:
            third_tick.set()
            await asyncio.Event().wait()

    clock = FakeClock(NOW)
    scheduler = ReminderScheduler(AdherenceEngine(store), interval_seconds=60, clock=clock, sleep=fake_sleep)

    await scheduler.start()
    await third_tick.wait()

    assert len(attempts) >= 3
    assert scheduler.is_started
    assert scheduler.last_report is not None

    await scheduler.stop()
    assert not scheduler.is_started


@pytest.mark.asyncio
async def test_run_once_reports_unexpected_error_as_skipped(store):
    async def broken_list(now):
        raise ValueError("bad frequency document")

    store.list_active_plan_items = broken_list
    scheduler = ReminderScheduler(AdherenceEngine(store), clock=FakeClock(NOW))

    assert await scheduler.run_once() is None
    assert not scheduler.engine.is_running


@pytest.mark.asyncio
async def test_start_sweeps_eagerly_then_on_interval(store):
    ticks = []
    tick_seen = asyncio.Event()

    async def fake_sleep(seconds):
        ticks.append(seconds)
        if len(ticks) > 2:
            tick_seen.set()
            await asyncio.Event().wait()

    clock = FakeClock(NOW)
    scheduler = ReminderScheduler(AdherenceEngine(store), interval_seconds=60, clock=clock, sleep=fake_sleep)

    await scheduler.start()
    assert scheduler.last_report.ran_at == NOW
    assert scheduler.is_started

    await tick_seen.wait()
    assert ticks == [60, 60, 60]

    await scheduler.stop()
    assert not scheduler.is_started


@pytest.mark.asyncio
async def test_start_twice_keeps_one_loop(store):
    async def idle(seconds):
        await asyncio.Event().wait()

    scheduler = ReminderScheduler(AdherenceEngine(store), clock=FakeClock(NOW), sleep=idle)

    await scheduler.start()
    task = scheduler._task
    await scheduler.start()

    assert scheduler._task is task
    await scheduler.stop()
