"""Cooperative cancellation for running executions."""

from __future__ import annotations

import asyncio
from typing import Optional

from .exceptions import ExecutionCancelled


class CancellationToken:
    """Signal shared between the engine and the steps of one execution."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExecutionCancelled(self.reason or "cancelled")
