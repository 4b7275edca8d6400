"""Debounced persistence of the reading position."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol, Set

LOGGER = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay, e.g. an asyncio loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


ProgressWriter = Callable[[int], Awaitable[bool]]


class ProgressTracker:
    """Single pending-write slot with trailing-edge debounce.

    ``schedule`` re-arms the timer on every call so only a quiet period of
    ``delay`` seconds triggers a write, and only the latest value is written.
    ``flush_now`` bypasses the timer. Writes are serialized, so a flush issued
    after a timer write has started is always the last one to land.
    """

    def __init__(
        self,
        writer: ProgressWriter,
        *,
        delay: float = 2.0,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._writer = writer
        self.delay = delay
        self._scheduler = scheduler
        self._handle: TimerHandle | None = None
        self._latest: int | None = None
        self._lock = asyncio.Lock()
        self._inflight: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def latest(self) -> int | None:
        return self._latest

    def schedule(self, value: int) -> None:
        self._latest = value
        self.cancel()
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._handle = scheduler.call_later(self.delay, self._on_timer)

    def cancel(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    async def drain(self) -> None:
        """Wait for timer-triggered writes that are already running."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def flush_now(self, value: int | None = None) -> bool | None:
        """Write immediately; returns ``None`` when there is nothing to write."""
        self.cancel()
        if value is not None:
            self._latest = value
        await self.drain()
        if self._latest is None:
            return None
        return await self._write_latest()

    def _on_timer(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._write_latest())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _write_latest(self) -> bool:
        async with self._lock:
            value = self._latest
            if value is None:
                return False
            try:
                return await self._writer(value)
            except Exception:
                LOGGER.exception("Progress write for line %s failed", value)
                return False
