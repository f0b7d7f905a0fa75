"""
Streaming delivery of realtime events over Server-Sent Events.

An ``EventStream`` turns one client connection into a set of Event Store
subscriptions. Subscription callbacks encode frames onto an asyncio queue;
the response body generator drains the queue and writes them.
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import suppress
from typing import Any

import orjson
from loguru import logger

from app.modules.realtime.clock import Clock, TimerHandle
from app.modules.realtime.event_store import EventStore
from app.modules.realtime.types import (
    GLOBAL_CHANNEL,
    Disposer,
    EventType,
    RealtimeEvent,
    private_channel_owner,
)

KEEPALIVE_INTERVAL = 30.0  # seconds

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_CLOSE = object()


def parse_channels(raw: str | None) -> list[str]:
    """Split a comma-separated channel list; defaults to the global channel."""
    if raw is None:
        return [GLOBAL_CHANNEL]
    return [part.strip() for part in raw.split(",")]


def authorize_channels(channels: Iterable[str], user_id: int | None) -> list[str]:
    """
    Filter requested channels down to those the identity may join.

    ``/user/{id}`` channels require ``user_id == id``; every other channel is
    open. Blank names and duplicates are dropped.
    """
    allowed: list[str] = []
    for channel in channels:
        if not channel or channel in allowed:
            continue
        owner = private_channel_owner(channel)
        if owner is not None and (user_id is None or str(user_id) != owner):
            continue
        allowed.append(channel)
    return allowed


def format_frame(payload: dict[str, Any]) -> bytes:
    """Encode one SSE frame."""
    return b"data: " + orjson.dumps(payload, option=orjson.OPT_NON_STR_KEYS) + b"\n\n"


class EventStream:
    """
    One client's live subscription to a set of channels.

    Usage:
        stream = EventStream(store, ["/topic/5"], clock)
        return StreamingResponse(stream.frames(), media_type="text/event-stream")

    ``close()`` disposes every subscription and the keep-alive timer. It runs
    once, whether the client disconnects, a write fails or the server stops.
    """

    def __init__(
        self,
        store: EventStore,
        channels: list[str],
        clock: Clock,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
        queue_size: int = 0,
    ) -> None:
        self.store = store
        self.channels = list(channels)
        self.clock = clock
        self.keepalive_interval = keepalive_interval

        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._disposers: list[Disposer] = []
        self._keepalive: TimerHandle | None = None
        self._opened = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> None:
        """
        Subscribe to every channel and start the keep-alive.

        The ``connected`` frame is queued before any subscription exists, so
        it is always the first frame a client reads.
        """
        if self._opened or self._closed:
            return
        self._opened = True
        self._loop = asyncio.get_running_loop()

        self._put(format_frame({
            "type": EventType.CONNECTED.value,
            "channels": self.channels,
            "timestamp": self.clock.now_ms(),
        }))

        for channel in self.channels:
            self._disposers.append(self.store.subscribe(channel, self._on_event))

        self._keepalive = self.clock.call_every(self.keepalive_interval, self._ping)
        logger.info(f"Realtime stream opened for {', '.join(self.channels)}")

    def close(self) -> None:
        """Dispose subscriptions and timers. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        if self._keepalive is not None:
            self._keepalive.cancel()
            self._keepalive = None

        disposers, self._disposers = self._disposers, []
        for dispose in disposers:
            dispose()

        # Wake the writer if it is waiting on an empty queue
        with suppress(asyncio.QueueFull):
            self._queue.put_nowait(_CLOSE)

        logger.info(f"Realtime stream closed for {', '.join(self.channels)}")

    async def frames(self) -> AsyncIterator[bytes]:
        """Yield encoded frames until the stream is closed or cancelled."""
        self.open()
        try:
            while not self._closed:
                frame = await self._queue.get()
                if frame is _CLOSE:
                    break
                yield frame
        finally:
            self.close()

    def _on_event(self, event: RealtimeEvent) -> None:
        self._deliver(event.to_dict())

    def _ping(self) -> None:
        self._deliver({"type": EventType.PING.value, "timestamp": self.clock.now_ms()})

    def _deliver(self, payload: dict[str, Any]) -> None:
        if self._closed or self._loop is None:
            return
        # Encode here so one unserializable event is dropped without ending the stream
        try:
            frame = format_frame(payload)
        except orjson.JSONEncodeError:
            logger.exception(
                f"Dropping {payload.get('type')} event that cannot be encoded as JSON"
            )
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._put(frame)
        else:
            self._loop.call_soon_threadsafe(self._put, frame)

    def _put(self, frame: bytes) -> None:
        if self._closed:
            return
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("Realtime stream queue full, dropping frame")
