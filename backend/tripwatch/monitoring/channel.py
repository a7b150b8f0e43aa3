"""Typed in-process event channels with explicit unsubscribe handles."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Callback = Callable[[T], Awaitable[None] | None]


class Subscription(Generic[T]):
    """Handle returned by `EventChannel.subscribe`."""

    def __init__(self, channel: "EventChannel[T]", callback: Callback[T]) -> None:
        self._channel = channel
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self.active:
            self.active = False
            self._channel._remove(self)

    def __call__(self) -> None:
        self.unsubscribe()


class EventChannel(Generic[T]):
    """Broadcast channel for one event type.

    Callbacks may be plain functions or coroutine functions. Errors raised by
    a subscriber are logged and never stop delivery to the others.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscriptions: list[Subscription[T]] = []

    def subscribe(self, callback: Callback[T]) -> Subscription[T]:
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: T) -> None:
        """Deliver one event to every current subscriber.

        Sync callbacks run in subscription order; async callbacks are awaited
        together before this returns.
        """
        pending: list[Awaitable[None]] = []

        for subscription in list(self._subscriptions):
            try:
                outcome = subscription.callback(event)
            except Exception:
                logger.exception("Subscriber error on %s channel", self.name)
                continue
            if inspect.isawaitable(outcome):
                pending.append(outcome)

        if not pending:
            return

        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    "Async subscriber error on %s channel: %s",
                    self.name,
                    result,
                    exc_info=result,
                )

    def queue(self, maxsize: int = 64) -> tuple[Subscription[T], "asyncio.Queue[T]"]:
        """Subscribe a bounded queue, for streaming consumers.

        When the queue is full the oldest event is dropped.
        """
        events: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)

        def enqueue(event: T) -> None:
            if events.full():
                events.get_nowait()
            events.put_nowait(event)

        return self.subscribe(enqueue), events
