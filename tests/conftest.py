"""Shared fixtures for the A-Reader test suite."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List

import pytest


@dataclass
class FakeTimer:
    when: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FakeScheduler:
    """Virtual clock standing in for the asyncio loop's ``call_later``."""

    now: float = 0.0
    timers: List[FakeTimer] = field(default_factory=list)

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        """Move the clock forward and fire every timer that came due."""
        self.now += seconds
        due = [timer for timer in self.active if timer.when <= self.now]
        for timer in sorted(due, key=lambda item: item.when):
            self.timers.remove(timer)
            timer.callback()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()
