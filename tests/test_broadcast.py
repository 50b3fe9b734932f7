"""Tests for the state channel and event bus."""

import asyncio

import pytest

from focus_timer.broadcast import EventBus, StateChannel

pytestmark = pytest.mark.asyncio


class TestStateChannel:
    async def test_replays_current_value(self):
        channel = StateChannel("idle")
        channel.publish("running")

        sub = channel.subscribe()
        assert await sub.get() == "running"

    async def test_value_is_latest(self):
        channel = StateChannel(0)
        for n in range(1, 4):
            channel.publish(n)
        assert channel.value == 3

    async def test_slow_reader_gets_only_latest(self):
        channel = StateChannel(0)
        sub = channel.subscribe()
        for n in range(1, 601):
            channel.publish(n)
        assert await sub.get() == 600
        assert sub.drain() == []

    async def test_prompt_reader_sees_every_value_in_order(self):
        channel = StateChannel(0)
        sub = channel.subscribe()
        seen = []

        async def read():
            async for item in sub:
                seen.append(item)

        reader = asyncio.create_task(read())
        await asyncio.sleep(0)
        for n in range(1, 6):
            channel.publish(n)
            await asyncio.sleep(0)
        channel.close()
        await asyncio.wait_for(reader, timeout=1)
        assert seen == [0, 1, 2, 3, 4, 5]

    async def test_each_subscriber_holds_latest(self):
        channel = StateChannel("a")
        first = channel.subscribe()
        assert first.drain() == ["a"]
        second = channel.subscribe()
        channel.publish("b")
        channel.publish("c")
        assert first.drain() == ["c"]
        assert second.drain() == ["c"]

    async def test_close_keeps_unread_latest(self):
        channel = StateChannel("idle")
        sub = channel.subscribe()
        channel.publish("running")
        channel.close()
        assert [item async for item in sub] == ["running"]


class TestEventBus:
    async def test_late_subscriber_misses_earlier_events(self):
        bus = EventBus()
        bus.publish("early")
        sub = bus.subscribe()
        bus.publish("late")
        assert sub.drain() == ["late"]

    async def test_slow_reader_keeps_every_event(self):
        bus = EventBus()
        sub = bus.subscribe()
        for n in range(5):
            bus.publish(n)
        assert sub.drain() == [0, 1, 2, 3, 4]

    async def test_no_subscribers_is_fine(self):
        bus = EventBus()
        bus.publish("nobody listening")
        assert bus.subscriber_count == 0

    async def test_closed_subscription_stops_receiving(self):
        bus = EventBus()
        sub = bus.subscribe()
        sub.close()
        bus.publish("after close")
        assert sub.drain() == []
        assert bus.subscriber_count == 0

    async def test_close_ends_iteration(self):
        bus = EventBus()
        sub = bus.subscribe()
        bus.publish(1)
        bus.publish(2)
        bus.close()
        assert [item async for item in sub] == [1, 2]

    async def test_get_after_close_raises(self):
        bus = EventBus()
        sub = bus.subscribe()
        sub.close()
        with pytest.raises(StopAsyncIteration):
            await sub.get()
        # stays closed for every later reader
        with pytest.raises(StopAsyncIteration):
            await sub.get()

    async def test_waiting_reader_is_woken(self):
        bus = EventBus()
        sub = bus.subscribe()
        reader = asyncio.create_task(sub.get())
        await asyncio.sleep(0)
        bus.publish("ping")
        assert await asyncio.wait_for(reader, timeout=1) == "ping"

    async def test_context_manager_closes(self):
        bus = EventBus()
        async with bus.subscribe() as sub:
            assert bus.subscriber_count == 1
        assert sub.closed
        assert bus.subscriber_count == 0
