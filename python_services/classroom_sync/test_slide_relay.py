"""Tests for the slide relay, slide followers and the teacher slide flow."""

import asyncio

import pytest

from classroom_sync.scheduler import Scheduler
from classroom_sync.slide_relay import SlideFollower, SlideRelay


async def _yield(times=3):
    for _ in range(times):
        await asyncio.sleep(0)


def test_publish_and_read(cache):
    relay = SlideRelay(cache)
    assert relay.current("L1") is None
    relay.publish("L1", 2)
    relay.publish("L1", 5)
    assert relay.current("L1") == 5
    relay.clear("L1")
    assert relay.current("L1") is None


def test_negative_index_is_rejected(cache):
    with pytest.raises(ValueError):
        SlideRelay(cache).publish("L1", -1)


async def test_follower_reports_changes_only(cache):
    relay = SlideRelay(cache)
    seen = []
    follower = SlideFollower(relay, "L1", seen.append, scheduler=Scheduler())

    assert await follower.poll_once() is None
    relay.publish("L1", 1)
    await follower.poll_once()
    await follower.poll_once()
    relay.publish("L1", 3)
    await follower.poll_once()
    assert seen == [1, 3]


async def test_follower_accepts_async_callbacks(cache):
    relay = SlideRelay(cache)
    seen = []

    async def on_change(index):
        seen.append(index)

    follower = SlideFollower(relay, "L1", on_change, scheduler=Scheduler())
    relay.publish("L1", 4)
    await follower.poll_once()
    assert seen == [4]


async def test_follow_slides_polls_until_stopped(classroom):
    seen = []
    classroom.relay.publish("L1", 1)

    follower = classroom.follow_slides("L1", seen.append)
    await _yield()
    assert follower.running
    assert seen == [1]

    follower.stop()
    await _yield()
    assert not follower.running
    assert classroom.scheduler.active == 0


class TestChangeSlide:
    async def test_updates_active_students_of_that_lesson(self, classroom):
        ada = await classroom.sessions.create_session("Ada", "L1")
        bo = await classroom.sessions.create_session("Bo", "L1")
        other = await classroom.sessions.create_session("Cy", "L2")

        updated = await classroom.change_slide("L1", 3)

        assert {s.student_id for s in updated} == {ada.student_id, bo.student_id}
        assert all(s.current_slide == 3 for s in updated)
        assert classroom.relay.current("L1") == 3
        assert classroom.cache.get_session_record(other.student_id)["currentSlide"] == 0

    async def test_idle_students_are_not_touched(self, classroom, clock):
        ada = await classroom.sessions.create_session("Ada", "L1")
        # past both the local window and the store's own activity filter
        clock.advance(31_000)

        assert await classroom.change_slide("L1", 1) == []
        assert classroom.cache.get_session_record(ada.student_id)["currentSlide"] == 0
        assert classroom.relay.current("L1") == 1

    async def test_negative_index(self, classroom):
        with pytest.raises(ValueError):
            await classroom.change_slide("L1", -2)
