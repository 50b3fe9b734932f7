"""Clock primitives for the countdown loop.

All time values are integer milliseconds. The engine only ever calls
``sleep``; cancelling the task blocked in it interrupts the wait at once.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from typing import Protocol


def _to_ms(seconds: float) -> int:
    return max(0, int(round(seconds * 1000)))


class Clock(Protocol):
    def monotonic_ms(self) -> int: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall clock backed by the running event loop."""

    def monotonic_ms(self) -> int:
        return int(time.monotonic() * 1000)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock:
    """Virtual clock for deterministic tests.

    ``sleep`` parks the caller until ``advance`` moves virtual time past its
    deadline. Sleepers wake in deadline order, and the event loop is given a
    few turns after every wake so woken tasks can run and re-arm.
    """

    SETTLE_TURNS = 10

    def __init__(self, now_ms: int = 0):
        self._now_ms = now_ms
        self._sleepers: list[tuple[int, int, asyncio.Future]] = []
        self._seq = itertools.count()

    def monotonic_ms(self) -> int:
        return self._now_ms

    @property
    def pending(self) -> int:
        return sum(1 for _, _, fut in self._sleepers if not fut.done())

    async def sleep(self, seconds: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self._now_ms + _to_ms(seconds), next(self._seq), fut))
        await fut

    async def settle(self) -> None:
        for _ in range(self.SETTLE_TURNS):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """Move virtual time forward, waking every sleeper that falls due."""
        target = self._now_ms + _to_ms(seconds)
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, fut = heapq.heappop(self._sleepers)
            if fut.done():
                continue
            self._now_ms = max(self._now_ms, deadline)
            fut.set_result(None)
            await self.settle()
        self._now_ms = target
        await self.settle()
