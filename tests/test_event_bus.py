import pytest

from forgeflow.event_bus import EventBus


@pytest.mark.asyncio
async def test_named_and_wildcard_listeners_receive_events():
    bus = EventBus()
    named, everything = [], []
    bus.on("step:start", lambda event, payload: named.append(payload["step"]))
    bus.on("*", lambda event, payload: everything.append(event))

    await bus.emit("step:start", {"step": "a"})
    await bus.emit("step:complete", {"step": "a"})

    assert named == ["a"]
    assert everything == ["step:start", "step:complete"]


@pytest.mark.asyncio
async def test_async_listeners_are_awaited():
    bus = EventBus()
    seen = []

    async def listener(event, payload):
        seen.append(payload)

    bus.on("x", listener)
    await bus.emit("x")

    assert seen == [{}]


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_delivery():
    bus = EventBus()
    seen = []

    def broken(event, payload):
        raise RuntimeError("listener bug")

    bus.on("x", broken)
    bus.on("x", lambda event, payload: seen.append(event))
    await bus.emit("x", {"n": 1})

    assert seen == ["x"]


@pytest.mark.asyncio
async def test_unsubscribe_and_clear():
    bus = EventBus()
    seen = []
    unsubscribe = bus.on("x", lambda event, payload: seen.append(1))
    bus.on("y", lambda event, payload: seen.append(2))
    assert bus.listener_count() == 2

    unsubscribe()
    await bus.emit("x")
    assert seen == []
    assert bus.listener_count("x") == 0

    bus.clear()
    await bus.emit("y")
    assert seen == []
