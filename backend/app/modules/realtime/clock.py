"""
Clock and timer abstraction for the realtime trackers.

Every timer-driven side effect (presence sweep, typing expiry, stream
keep-alive) goes through a ``Clock`` so tests can substitute a manual one
and advance time without sleeping.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Callable, Protocol

from loguru import logger


class TimerHandle(Protocol):
    """Handle returned by a scheduled timer."""

    def cancel(self) -> None: ...


class Clock(ABC):
    """Time source and scheduler."""

    @abstractmethod
    def now_ms(self) -> int:
        """Current time in milliseconds since the epoch."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""

    @abstractmethod
    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` every ``interval`` seconds until cancelled."""


class _RepeatingTimer:
    """Re-arms a ``loop.call_later`` handle after every run."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval: float,
        callback: Callable[[], None],
    ) -> None:
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._handle = loop.call_later(interval, self._run)

    def _run(self) -> None:
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception:
            logger.exception("Repeating timer callback failed")
        if not self._cancelled:
            self._handle = self._loop.call_later(self._interval, self._run)

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class AsyncioClock(Clock):
    """
    Wall clock backed by the asyncio event loop.

    Timers are scheduled on ``loop`` if given, otherwise on the loop running
    at scheduling time.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._get_loop().call_later(delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        return _RepeatingTimer(self._get_loop(), interval, callback)
