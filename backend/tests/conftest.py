"""
Pytest configuration and fixtures for the forum realtime tests.

This module provides:
- A manual clock for driving timers without sleeping
- Fresh realtime components per test
- An HTTP client wired to an isolated RealtimeService
"""

import itertools
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.modules.realtime import (
    Clock,
    EventStore,
    PresenceTracker,
    RealtimeEvent,
    RealtimeService,
    TypingTracker,
    get_realtime_service,
)

START_MS = 1_700_000_000_000


# ============================================================================
# Manual Clock
# ============================================================================


class ManualTimer:
    """Timer owned by ManualClock."""

    def __init__(self, due: int, seq: int, callback: Callable[[], None], interval: int | None):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock(Clock):
    """Clock whose time only moves when the test says so."""

    def __init__(self, start_ms: int = START_MS):
        self._now = start_ms
        self._seq = itertools.count()
        self._timers: list[ManualTimer] = []
        # Wall clock reads this far behind the timer schedule
        self.lag_ms = 0

    def now_ms(self) -> int:
        return self._now - self.lag_ms

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        return self._schedule(int(delay * 1000), callback, None)

    def call_every(self, interval: float, callback: Callable[[], None]) -> ManualTimer:
        return self._schedule(int(interval * 1000), callback, int(interval * 1000))

    def _schedule(self, delay_ms: int, callback, interval):
        timer = ManualTimer(self._now + delay_ms, next(self._seq), callback, interval)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in order."""
        target = self._now + int(seconds * 1000)
        while True:
            due = [t for t in self.pending if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self._now = max(self._now, timer.due)
            if timer.interval is None:
                timer.cancelled = True
            else:
                timer.due += timer.interval
            timer.callback()
        self._now = target

    def jump(self, seconds: float) -> None:
        """Move time forward without firing any timer."""
        self._now += int(seconds * 1000)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> EventStore:
    return EventStore(clock=clock)


@pytest.fixture
def presence(store: EventStore, clock: ManualClock) -> PresenceTracker:
    return PresenceTracker(store, clock)


@pytest.fixture
def typing_tracker(store: EventStore, clock: ManualClock) -> TypingTracker:
    return TypingTracker(store, clock)


@pytest.fixture
def recorder() -> Callable[[EventStore, str], list[RealtimeEvent]]:
    """Subscribe a list-appending callback and return the list."""

    def record(store: EventStore, channel: str) -> list[RealtimeEvent]:
        events: list[RealtimeEvent] = []
        store.subscribe(channel, events.append)
        return events

    return record


@pytest.fixture
def service(clock: ManualClock) -> RealtimeService:
    return RealtimeService(clock=clock)


@pytest.fixture
def client(service: RealtimeService):
    """HTTP client using an isolated realtime service."""
    app.dependency_overrides[get_realtime_service] = lambda: service
    app.state.realtime = service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
