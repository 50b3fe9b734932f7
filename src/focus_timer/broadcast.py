"""In-process fan-out channels.

StateChannel replays its latest value to new subscribers and conflates: a
subscriber that falls behind only ever holds the newest value. EventBus does
not replay and keeps every event, in publish order, per subscriber.
Publishing is synchronous and never blocks on a slow consumer.
"""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    def __init__(self, owner: _Broadcast[T], conflate: bool = False):
        self._owner = owner
        self._conflate = conflate
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _push(self, item) -> None:
        if self.closed:
            return
        if self._conflate:
            while not self._queue.empty():
                self._queue.get_nowait()
        self._queue.put_nowait(item)

    async def get(self) -> T:
        """Wait for the next value. Raises StopAsyncIteration once closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def get_nowait(self) -> T:
        item = self._queue.get_nowait()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise asyncio.QueueEmpty
        return item

    def drain(self) -> list[T]:
        """Everything delivered so far and not yet consumed."""
        items = []
        while True:
            try:
                items.append(self.get_nowait())
            except asyncio.QueueEmpty:
                return items

    def close(self) -> None:
        if self.closed:
            return
        self._owner._discard(self)
        self._queue.put_nowait(_CLOSED)
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        return await self.get()

    async def __aenter__(self) -> Subscription[T]:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class _Broadcast(Generic[T]):
    conflate = False

    def __init__(self):
        self._subscribers: list[Subscription[T]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription[T]:
        sub = Subscription(self, conflate=self.conflate)
        self._subscribers.append(sub)
        return sub

    def publish(self, item: T) -> None:
        for sub in list(self._subscribers):
            sub._push(item)

    def close(self) -> None:
        for sub in list(self._subscribers):
            sub.close()

    def _discard(self, sub: Subscription[T]) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)


class EventBus(_Broadcast[T]):
    """Fire-and-forget multicast. Late subscribers miss earlier events."""


class StateChannel(_Broadcast[T]):
    """Latest-value channel. New subscribers first receive the current value.

    Each subscription holds at most one unread value; a newer publish
    replaces it.
    """

    conflate = True

    def __init__(self, initial: T):
        super().__init__()
        self._value = initial

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self) -> Subscription[T]:
        sub = super().subscribe()
        sub._push(self._value)
        return sub

    def publish(self, item: T) -> None:
        self._value = item
        super().publish(item)
