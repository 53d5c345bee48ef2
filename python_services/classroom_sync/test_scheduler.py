"""Tests for cancelable periodic tasks and the classroom pollers built on them."""

import asyncio

from classroom_sync.scheduler import Scheduler


async def test_runs_until_cancelled():
    scheduler = Scheduler()
    ticks = []

    handle = scheduler.every(0.01, lambda: ticks.append(1), name="ticker")
    await asyncio.sleep(0.05)
    handle.cancel()
    await handle.wait_cancelled()
    count = len(ticks)
    await asyncio.sleep(0.03)

    assert count >= 2
    assert len(ticks) == count
    assert handle.cancelled
    assert scheduler.active == 0


async def test_failing_callback_keeps_running(caplog):
    scheduler = Scheduler()
    calls = []

    async def flaky():
        calls.append(1)
        raise RuntimeError("boom")

    scheduler.every(0.01, flaky, name="flaky")
    await asyncio.sleep(0.05)
    await scheduler.aclose()

    assert len(calls) >= 2
    assert "Periodic task flaky failed" in caplog.text


async def test_delayed_start():
    scheduler = Scheduler()
    ticks = []

    scheduler.every(10, lambda: ticks.append(1), run_immediately=False)
    await asyncio.sleep(0.01)
    assert ticks == []
    await scheduler.aclose()


async def test_close_cancels_everything():
    scheduler = Scheduler()
    handles = [scheduler.every(10, lambda: None, name=f"t{i}") for i in range(3)]
    assert scheduler.active == 3

    await scheduler.aclose()
    assert scheduler.active == 0
    assert all(h.cancelled for h in handles)


async def test_watch_presence_delivers_updates(classroom):
    await classroom.sessions.create_session("Ada", "L1")
    updates = []

    handle = classroom.watch_presence("L1", updates.append, interval_seconds=0.01)
    await asyncio.sleep(0.05)
    handle.cancel()

    assert updates
    assert [s.student_name for s in updates[0]] == ["Ada"]


async def test_watch_lessons_delivers_lists(classroom, make_lesson):
    await classroom.lessons.save_lesson(make_lesson("L1"))
    updates = []

    handle = classroom.watch_lessons(updates.append, interval_seconds=0.01)
    await asyncio.sleep(0.05)
    handle.cancel()

    assert updates
    assert [lesson.id for lesson in updates[-1]] == ["L1"]


async def test_keep_alive_refreshes_heartbeat(classroom, clock):
    session = await classroom.sessions.create_session("Ada", "L1")
    clock.advance(4_000)

    handle = classroom.keep_alive(session.student_id, interval_seconds=0.01)
    await asyncio.sleep(0.03)
    handle.cancel()

    stored = classroom.cache.get_session_record(session.student_id)
    assert stored["lastActive"] == clock.now_ms()


async def test_close_stops_pollers(classroom):
    classroom.watch_presence("L1", lambda students: None, interval_seconds=0.01)
    classroom.follow_slides("L1", lambda index: None)
    assert classroom.scheduler.active == 2

    await classroom.close()
    assert classroom.scheduler.active == 0
