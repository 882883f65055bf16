from __future__ import annotations

import asyncio
import threading

import pytest

from associate.events import EventBus, KeyPressed, Tick


def test_bus_built_outside_a_loop_binds_on_first_get() -> None:
    bus = EventBus()
    assert bus.loop is None
    with pytest.raises(RuntimeError):
        bus.post_threadsafe(Tick(1.0))

    async def scenario():
        bus.post(Tick(1.0))
        event = await bus.get()
        return event, bus.loop is asyncio.get_running_loop()

    event, bound = asyncio.run(scenario())

    assert event == Tick(1.0)
    assert bound


def test_threadsafe_post_from_a_foreign_thread() -> None:
    async def scenario():
        bus = EventBus()
        thread = threading.Thread(target=bus.post_threadsafe, args=(KeyPressed("j"),))
        thread.start()
        thread.join()
        return await asyncio.wait_for(bus.get(), 1)

    assert asyncio.run(scenario()) == KeyPressed("j")
