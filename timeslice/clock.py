"""
Tick sources driving the engine.

The engine never decides when it runs; a host supplied clock calls it back.
``ManualClock`` advances only when told to, which keeps tests deterministic,
while ``AsyncioClock`` fires at a fixed cadence inside a running event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Callable, Dict, Optional, Protocol

LOG = logging.getLogger(__name__)

TickCallback = Callable[[], None]


def monotonic_ms() -> float:
    """Default engine time source in milliseconds."""

    return time.monotonic() * 1000.0


class Clock(Protocol):
    def subscribe(self, callback: TickCallback) -> int:
        ...

    def unsubscribe(self, handle: int) -> None:
        ...


class _SubscriberTable:
    """Token keyed callback table shared by the clock implementations."""

    def __init__(self) -> None:
        self._counter = 0
        self._subscribers: Dict[int, TickCallback] = {}

    def add(self, callback: TickCallback) -> int:
        if not callable(callback):
            raise TypeError("callback must be callable")
        self._counter += 1
        token = self._counter
        self._subscribers[token] = callback
        return token

    def remove(self, token: int) -> None:
        self._subscribers.pop(token, None)

    def snapshot(self) -> Dict[int, TickCallback]:
        return dict(self._subscribers)

    def __contains__(self, token: object) -> bool:
        return token in self._subscribers

    def __len__(self) -> int:
        return len(self._subscribers)


class ManualClock:
    """
    Clock advanced explicitly by the host (or a test) via :meth:`tick`.

    Subscriber exceptions propagate to the caller of :meth:`tick`.
    """

    def __init__(self) -> None:
        self._table = _SubscriberTable()
        self.ticks = 0

    def subscribe(self, callback: TickCallback) -> int:
        return self._table.add(callback)

    def unsubscribe(self, handle: int) -> None:
        self._table.remove(handle)

    @property
    def subscriber_count(self) -> int:
        return len(self._table)

    def tick(self, count: int = 1) -> None:
        for _ in range(max(0, int(count))):
            self.ticks += 1
            for token, callback in self._table.snapshot().items():
                # A callback may unsubscribe a later one during this tick.
                if token in self._table:
                    callback()


class AsyncioClock:
    """
    Fire subscribers every ``interval`` seconds from an asyncio task.

    The task is created when the first subscriber arrives and cancelled when
    the last one leaves, so an idle clock costs nothing.
    """

    def __init__(
        self,
        interval: float = 1.0 / 60.0,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.interval = max(0.0, float(interval))
        self._loop = loop
        self._table = _SubscriberTable()
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._table)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: TickCallback) -> int:
        if self._closed:
            raise RuntimeError("clock is closed")
        token = self._table.add(callback)
        if not self.running:
            loop = self._loop or asyncio.get_running_loop()
            self._task = loop.create_task(self._tick_loop())
        return token

    def unsubscribe(self, handle: int) -> None:
        self._table.remove(handle)
        if not len(self._table) and self._task is not None:
            self._task.cancel()
            self._task = None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _tick_loop(self) -> None:
        try:
            while len(self._table):
                await asyncio.sleep(self.interval)
                for token, callback in self._table.snapshot().items():
                    if token not in self._table:
                        continue
                    try:
                        callback()
                    except Exception:
                        LOG.exception("Clock subscriber %s failed.", token)
        except asyncio.CancelledError:
            pass
