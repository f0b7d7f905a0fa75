"""
Event Store - in-process pub/sub for realtime forum events.

Memory-resident and single-process: events are not persisted and are not
shared with other workers.
"""

import itertools
import threading
from collections import OrderedDict, deque
from typing import Any

from loguru import logger

from app.modules.realtime.clock import AsyncioClock, Clock
from app.modules.realtime.types import (
    GLOBAL_CHANNEL,
    STREAM_ONLY_TYPES,
    Disposer,
    EventCallback,
    EventType,
    RealtimeEvent,
    private_channel_owner,
)


class EventStore:
    """
    Channel-scoped subscription registry with synchronous fan-out.

    Usage:
        store = EventStore()
        dispose = store.subscribe("/topic/5", on_event)
        store.publish("/topic/5", EventType.POST_CREATED, {"id": 99}, actor_id=7)
        dispose()
    """

    def __init__(
        self,
        clock: Clock | None = None,
        history_size: int = 100,
        history_channels: int = 1000,
        global_fanout: bool = True,
    ) -> None:
        """
        Initialize event store.

        Args:
            clock: Time source for event timestamps
            history_size: Recent events retained per channel (0 disables)
            history_channels: Channels with retained history; least recently
                published channels are evicted first (0 disables the cap)
            global_fanout: Mirror public channel events to ``/global`` subscribers
        """
        self.clock = clock or AsyncioClock()
        self.history_size = history_size
        self.history_channels = history_channels
        self.global_fanout = global_fanout

        # channel -> {subscription id -> callback}, insertion ordered
        self._subscribers: dict[str, dict[int, EventCallback]] = {}
        self._recent: OrderedDict[str, deque[RealtimeEvent]] = OrderedDict()
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    # ==================== Subscriptions ====================

    def subscribe(self, channel: str, callback: EventCallback) -> Disposer:
        """
        Register ``callback`` for events on ``channel``.

        Returns:
            Zero-argument disposer removing exactly this registration.
            Calling it more than once is a no-op.
        """
        sub_id = next(self._ids)
        with self._lock:
            self._subscribers.setdefault(channel, {})[sub_id] = callback

        def dispose() -> None:
            with self._lock:
                callbacks = self._subscribers.get(channel)
                if callbacks is None or callbacks.pop(sub_id, None) is None:
                    return
                if not callbacks:
                    del self._subscribers[channel]

        return dispose

    def subscriber_count(self, channel: str) -> int:
        """Number of live subscriptions on a channel."""
        with self._lock:
            return len(self._subscribers.get(channel, ()))

    def channel_count(self) -> int:
        """Number of channels with at least one subscriber."""
        with self._lock:
            return len(self._subscribers)

    # ==================== Publishing ====================

    def publish(
        self,
        channel: str,
        type: EventType | str,
        data: Any,
        actor_id: int | None = None,
    ) -> RealtimeEvent:
        """
        Publish an event to every current subscriber of ``channel``.

        Subscribers are snapshotted before delivery, so registrations made or
        removed by a callback do not affect this call. A failing callback is
        logged and skipped.

        Returns:
            The constructed event

        Raises:
            ValueError: ``type`` is a stream-only frame type
        """
        type = type.value if isinstance(type, EventType) else type
        if type in STREAM_ONLY_TYPES:
            raise ValueError(f"'{type}' frames are reserved for the event stream")

        event = RealtimeEvent(
            type=type,
            channel=channel,
            data=data,
            timestamp=self.clock.now_ms(),
            actor_id=actor_id,
        )

        with self._lock:
            if self.history_size > 0:
                self._remember(event)

            callbacks = list(self._subscribers.get(channel, {}).values())
            if self._mirrors_to_global(channel):
                callbacks.extend(self._subscribers.get(GLOBAL_CHANNEL, {}).values())

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Error in event callback for {channel}")

        return event

    def _remember(self, event: RealtimeEvent) -> None:
        history = self._recent.get(event.channel)
        if history is None:
            history = self._recent[event.channel] = deque(maxlen=self.history_size)
            while 0 < self.history_channels < len(self._recent):
                self._recent.popitem(last=False)
        else:
            self._recent.move_to_end(event.channel)
        history.append(event)

    def _mirrors_to_global(self, channel: str) -> bool:
        return (
            self.global_fanout
            and channel != GLOBAL_CHANNEL
            and private_channel_owner(channel) is None
        )

    # ==================== History ====================

    def recent_events(self, channel: str, since: int | None = None) -> list[RealtimeEvent]:
        """
        Get recent events for a channel.

        Args:
            channel: Channel name
            since: Only events with a later timestamp (ms)
        """
        with self._lock:
            events = list(self._recent.get(channel, ()))
        if since:
            return [e for e in events if e.timestamp > since]
        return events

    def clear_channel(self, channel: str) -> None:
        """Drop the recent-event buffer for a channel."""
        with self._lock:
            self._recent.pop(channel, None)
