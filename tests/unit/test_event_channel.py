"""Tests for in-process event channels."""

import pytest

from backend.tripwatch.monitoring.channel import EventChannel


class TestEventChannel:
    """Test subscribe, publish and unsubscribe."""

    @pytest.mark.asyncio
    async def test_sync_and_async_subscribers_receive_events(self) -> None:
        channel: EventChannel[int] = EventChannel("numbers")
        received_sync: list[int] = []
        received_async: list[int] = []

        async def on_async(value: int) -> None:
            received_async.append(value)

        channel.subscribe(received_sync.append)
        channel.subscribe(on_async)

        await channel.publish(1)
        await channel.publish(2)

        assert received_sync == [1, 2]
        assert received_async == [1, 2]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self) -> None:
        channel: EventChannel[str] = EventChannel("words")
        received: list[str] = []

        subscription = channel.subscribe(received.append)
        await channel.publish("first")
        subscription.unsubscribe()
        await channel.publish("second")

        assert received == ["first"]
        assert subscription.active is False
        assert channel.subscriber_count == 0

    def test_unsubscribe_is_idempotent(self) -> None:
        channel: EventChannel[str] = EventChannel("words")
        subscription = channel.subscribe(lambda _: None)

        subscription.unsubscribe()
        subscription()  # Calling the handle also unsubscribes

        assert channel.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_others(self) -> None:
        channel: EventChannel[int] = EventChannel("numbers")
        received: list[int] = []

        def broken(value: int) -> None:
            raise RuntimeError("subscriber bug")

        async def broken_async(value: int) -> None:
            raise RuntimeError("async subscriber bug")

        channel.subscribe(broken)
        channel.subscribe(broken_async)
        channel.subscribe(received.append)

        await channel.publish(7)

        assert received == [7]

    @pytest.mark.asyncio
    async def test_unsubscribe_during_publish(self) -> None:
        channel: EventChannel[int] = EventChannel("numbers")
        received: list[int] = []
        subscriptions = []

        def once(value: int) -> None:
            received.append(value)
            subscriptions[0].unsubscribe()

        subscriptions.append(channel.subscribe(once))

        await channel.publish(1)
        await channel.publish(2)

        assert received == [1]

    @pytest.mark.asyncio
    async def test_queue_drops_oldest_when_full(self) -> None:
        channel: EventChannel[int] = EventChannel("numbers")
        subscription, events = channel.queue(maxsize=2)

        for value in (1, 2, 3):
            await channel.publish(value)

        assert events.get_nowait() == 2
        assert events.get_nowait() == 3
        subscription.unsubscribe()
        assert channel.subscriber_count == 0
