"""Deadline queue driving effect restoration."""

from __future__ import annotations

import asyncio
import contextlib
import heapq
import itertools
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from lux_aeternum.logging import get_logger

TimerCallback = Callable[[], Awaitable[None]]

_LOGGER = get_logger("lux.effects.timers")


@dataclass(frozen=True)
class TimerToken:
    """Identifies one scheduled entry; rescheduling a key yields a new token."""

    key: str
    deadline: float
    seq: int


class TimerQueue:
    """One heap of deadlines with at most one pending entry per key.

    Scheduling a key that already has a pending entry replaces it. Entries
    are cancelled lazily: the heap keeps stale items that are skipped when
    popped. A single background task sleeps until the earliest deadline;
    :meth:`fire_due` can also be called directly with an injected clock.

    Attributes:
        clock: Monotonic time source in seconds
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._heap: list[tuple[float, int, str]] = []
        self._entries: dict[str, tuple[TimerToken, TimerCallback]] = {}
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    def schedule(self, key: str, delay_ms: float, callback: TimerCallback) -> TimerToken:
        self.cancel(key)
        token = TimerToken(key, self.clock() + delay_ms / 1000, next(self._seq))
        self._entries[key] = (token, callback)
        heapq.heappush(self._heap, (token.deadline, token.seq, key))
        self._wakeup.set()
        return token

    def cancel(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def pending(self, key: str) -> bool:
        return key in self._entries

    def token(self, key: str) -> TimerToken | None:
        entry = self._entries.get(key)
        return entry[0] if entry else None

    def next_deadline(self) -> float | None:
        while self._heap:
            deadline, seq, key = self._heap[0]
            entry = self._entries.get(key)
            if entry is not None and entry[0].seq == seq:
                return deadline
            heapq.heappop(self._heap)
        return None

    async def fire_due(self) -> int:
        """Run every callback whose deadline has passed; return how many ran."""
        now = self.clock()
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            _, seq, key = heapq.heappop(self._heap)
            entry = self._entries.get(key)
            if entry is None or entry[0].seq != seq:
                continue
            del self._entries[key]
            fired += 1
            try:
                await entry[1]()
            except Exception:
                _LOGGER.exception("Timer callback for %s failed", key)
        return fired

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None

    def clear(self) -> None:
        self._entries.clear()
        self._heap.clear()

    async def _run(self) -> None:
        while True:
            self._wakeup.clear()
            await self.fire_due()
            deadline = self.next_deadline()
            timeout = None if deadline is None else max(0.0, deadline - self.clock())
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wakeup.wait(), timeout)

    def __len__(self) -> int:
        return len(self._entries)
