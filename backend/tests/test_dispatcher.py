"""Event dispatcher: routing notifications into per-channel lanes."""

import asyncio

import pytest

from linekeeper.dispatcher import EventDispatcher, EventKind, VoiceStateChange, split_change

CONTROLLER = 999


class TestSplitChange:
    def test_join(self):
        [(key, event)] = split_change(VoiceStateChange(1, 7, None, 100), CONTROLLER)

        assert key == 100
        assert event.kind is EventKind.JOINED
        assert event.channel_id == 100

    def test_move_is_leave_then_join(self):
        routed = split_change(VoiceStateChange(1, 7, 100, 200), CONTROLLER)

        assert [(key, event.kind) for key, event in routed] == [
            (100, EventKind.LEFT),
            (200, EventKind.JOINED),
        ]
        assert routed[1][1].previous_channel_id == 100

    def test_same_channel_is_ignored(self):
        assert split_change(VoiceStateChange(1, 7, 100, 100), CONTROLLER) == []

    def test_controller_gets_its_own_lane(self):
        [(key, event)] = split_change(VoiceStateChange(1, CONTROLLER, 100, 300), CONTROLLER)

        assert key == ("controller", 1)
        assert event.kind is EventKind.CONTROLLER_MOVED
        assert (event.previous_channel_id, event.channel_id) == (100, 300)


@pytest.fixture
async def recorder():
    handled = []
    gates: dict[int, asyncio.Event] = {}

    async def handler(event):
        gate = gates.get(event.channel_id)
        if gate is not None:
            await gate.wait()
        if event.member_id == 13:
            raise RuntimeError("boom")
        handled.append((event.channel_id, event.member_id, event.kind))

    dispatcher = EventDispatcher(handler, lambda: CONTROLLER)
    dispatcher.start()
    yield dispatcher, handled, gates
    await dispatcher.stop()


class TestDispatcher:
    async def test_events_on_one_channel_keep_their_order(self, recorder):
        dispatcher, handled, _ = recorder
        for member_id in (1, 2, 3):
            dispatcher.submit(VoiceStateChange(1, member_id, None, 100))
        dispatcher.submit(VoiceStateChange(1, 2, 100, None))

        await dispatcher.drain()

        assert handled == [
            (100, 1, EventKind.JOINED),
            (100, 2, EventKind.JOINED),
            (100, 3, EventKind.JOINED),
            (100, 2, EventKind.LEFT),
        ]

    async def test_failing_handler_does_not_stop_the_lane(self, recorder):
        dispatcher, handled, _ = recorder
        dispatcher.submit(VoiceStateChange(1, 13, None, 100))
        dispatcher.submit(VoiceStateChange(1, 14, None, 100))

        await dispatcher.drain()

        assert handled == [(100, 14, EventKind.JOINED)]

    async def test_slow_channel_does_not_block_others(self, recorder):
        dispatcher, handled, gates = recorder
        gates[100] = asyncio.Event()
        dispatcher.submit(VoiceStateChange(1, 1, None, 100))
        dispatcher.submit(VoiceStateChange(1, 2, None, 200))

        for _ in range(50):
            if handled:
                break
            await asyncio.sleep(0.01)
        assert handled == [(200, 2, EventKind.JOINED)]

        gates[100].set()
        await dispatcher.drain()
        assert (100, 1, EventKind.JOINED) in handled

    async def test_stop_and_restart(self, recorder):
        dispatcher, handled, _ = recorder
        await dispatcher.stop()
        assert not dispatcher.running

        dispatcher.start()
        dispatcher.submit(VoiceStateChange(1, 1, None, 100))
        await dispatcher.drain()
        assert handled == [(100, 1, EventKind.JOINED)]
