"""
Realtime Module - live forum updates.

Features:
- In-process pub/sub event store
- Server-Sent Events delivery
- Presence tracking with heartbeat timeout
- Typing indicators
"""

from app.modules.realtime.clock import AsyncioClock, Clock
from app.modules.realtime.event_store import EventStore
from app.modules.realtime.presence import PresenceAction, PresenceTracker
from app.modules.realtime.service import RealtimeService, get_realtime_service
from app.modules.realtime.stream import EventStream, authorize_channels
from app.modules.realtime.types import ChannelType, EventType, RealtimeEvent, channel_name
from app.modules.realtime.typing_indicator import TypingAction, TypingTracker

__all__ = [
    "AsyncioClock",
    "ChannelType",
    "Clock",
    "EventStore",
    "EventStream",
    "EventType",
    "PresenceAction",
    "PresenceTracker",
    "RealtimeEvent",
    "RealtimeService",
    "TypingAction",
    "TypingTracker",
    "authorize_channels",
    "channel_name",
    "get_realtime_service",
]
