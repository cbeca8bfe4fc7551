"""Clock and timer services used for timestamps and ``delay`` steps.

Suspension is modelled as a future resolved by a scheduled callback, so a
delayed execution holds no thread or worker while it waits.
"""

from __future__ import annotations

import abc
import asyncio
import heapq
import itertools
from datetime import datetime, timedelta, timezone
from typing import Optional

from .cancellation import CancellationToken


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


class BaseClock(metaclass=abc.ABCMeta):
    """Abstract time source with timer scheduling."""

    @abc.abstractmethod
    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        raise NotImplementedError

    @abc.abstractmethod
    def schedule(self, seconds: float) -> asyncio.Future:
        """Return a future resolved once ``seconds`` have elapsed."""
        raise NotImplementedError

    async def sleep(self, seconds: float, token: Optional[CancellationToken] = None) -> None:
        """Suspend for ``seconds``, waking early if ``token`` is cancelled.

        Raises:
            ExecutionCancelled: if the token was cancelled while waiting.
        """
        if token is not None:
            token.raise_if_cancelled()
        timer = self.schedule(seconds)
        if token is None:
            await timer
            return

        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({timer, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            timer.cancel()
        token.raise_if_cancelled()


class AsyncioClock(BaseClock):
    """Wall clock backed by the running event loop's timers."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def schedule(self, seconds: float) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        handle = loop.call_later(max(0.0, seconds), _resolve, future)
        future.add_done_callback(lambda _: handle.cancel())
        return future


class VirtualClock(BaseClock):
    """Manually driven clock for tests.

    With ``auto_advance`` every timer fires on the next loop iteration and
    virtual time jumps to its deadline. Otherwise timers fire only when
    :meth:`advance` moves time past their deadline.
    """

    def __init__(
        self, start: Optional[datetime] = None, auto_advance: bool = False
    ) -> None:
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.auto_advance = auto_advance
        self._timers: list[tuple[datetime, int, asyncio.Future]] = []
        self._counter = itertools.count()

    def now(self) -> datetime:
        return self._now

    @property
    def pending(self) -> int:
        """Number of timers still waiting to fire."""
        return sum(1 for _, _, future in self._timers if not future.done())

    def schedule(self, seconds: float) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        deadline = self._now + timedelta(seconds=max(0.0, seconds))
        if self.auto_advance:
            self._now = max(self._now, deadline)
            loop.call_soon(_resolve, future)
        else:
            heapq.heappush(self._timers, (deadline, next(self._counter), future))
        return future

    async def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in deadline order."""
        target = self._now + timedelta(seconds=seconds)
        await _drain()
        while self._timers and self._timers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._timers)
            self._now = max(self._now, deadline)
            _resolve(future)
            await _drain()
        self._now = target
        await _drain()

    async def wait_for_timers(self, count: int = 1, max_iterations: int = 1000) -> None:
        """Yield to the loop until at least ``count`` timers are pending."""
        for _ in range(max_iterations):
            if self.pending >= count:
                return
            await asyncio.sleep(0)
        raise RuntimeError(f"Expected {count} pending timer(s), found {self.pending}")


async def _drain(iterations: int = 20) -> None:
    """Let ready callbacks and woken tasks run."""
    for _ in range(iterations):
        await asyncio.sleep(0)
