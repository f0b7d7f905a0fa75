"""
Realtime Service - owns the event store and the presence/typing trackers.
"""

from fastapi import Request
from loguru import logger

from app.core.config import Settings, settings
from app.modules.realtime.clock import AsyncioClock, Clock
from app.modules.realtime.event_store import EventStore
from app.modules.realtime.presence import PresenceTracker
from app.modules.realtime.stream import EventStream
from app.modules.realtime.typing_indicator import TypingTracker


class RealtimeService:
    """
    Process-wide realtime state.

    Constructed once at startup and handed to endpoints through
    ``get_realtime_service``. Tests build their own instance with a manual
    clock.
    """

    def __init__(
        self,
        config: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or settings
        self.clock = clock or AsyncioClock()

        self.store = EventStore(
            clock=self.clock,
            history_size=self.config.realtime_history_size,
            history_channels=self.config.realtime_history_channels,
            global_fanout=self.config.realtime_global_fanout,
        )
        self.presence = PresenceTracker(
            self.store,
            self.clock,
            timeout=self.config.realtime_presence_timeout,
            sweep_interval=self.config.realtime_presence_sweep_interval,
        )
        self.typing = TypingTracker(
            self.store,
            self.clock,
            timeout=self.config.realtime_typing_timeout,
        )

        self._streams: set[EventStream] = set()
        self._running = False

    @property
    def stream_count(self) -> int:
        return len(self._streams)

    def start(self) -> None:
        """Start background timers."""
        if self._running:
            return
        self._running = True
        self.presence.start()
        logger.info("Realtime service started")

    def stop(self) -> None:
        """Stop timers and close open streams."""
        self._running = False
        self.presence.stop()
        self.typing.stop()

        for stream in list(self._streams):
            stream.close()
        self._streams.clear()

        logger.info("Realtime service stopped")

    def open_stream(self, channels: list[str]) -> EventStream:
        """Create a stream for already-authorized channels."""
        return _TrackedStream(
            self,
            self.store,
            channels,
            self.clock,
            keepalive_interval=self.config.realtime_keepalive_interval,
            queue_size=self.config.realtime_stream_queue_size,
        )


class _TrackedStream(EventStream):
    """Stream registered with the service while it is open."""

    def __init__(self, service: RealtimeService, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._service = service

    def open(self) -> None:
        if self.closed:
            return
        super().open()
        self._service._streams.add(self)

    def close(self) -> None:
        super().close()
        self._service._streams.discard(self)


def get_realtime_service(request: Request) -> RealtimeService:
    """FastAPI dependency returning the application's realtime service."""
    return request.app.state.realtime
