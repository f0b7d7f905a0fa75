"""
Realtime event types and payload shapes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TypedDict

GLOBAL_CHANNEL = "/global"
USER_CHANNEL_PREFIX = "/user/"


class EventType(str, Enum):
    """Known event kinds. Producers may publish other type strings."""

    POST_CREATED = "post:created"
    POST_UPDATED = "post:updated"
    POST_DELETED = "post:deleted"
    TOPIC_CREATED = "topic:created"
    TOPIC_UPDATED = "topic:updated"
    LIKE_ADDED = "like:added"
    LIKE_REMOVED = "like:removed"
    NOTIFICATION = "notification:new"
    PRESENCE_JOIN = "presence:join"
    PRESENCE_LEAVE = "presence:leave"
    TYPING_START = "typing:start"
    TYPING_STOP = "typing:stop"

    # Stream-only frames, never published through the store
    CONNECTED = "connected"
    PING = "ping"


STREAM_ONLY_TYPES = frozenset({EventType.CONNECTED.value, EventType.PING.value})


class ChannelType(str, Enum):
    """Channel namespaces used by the forum."""

    TOPIC = "topic"
    CATEGORY = "category"
    USER = "user"
    GLOBAL = "global"


@dataclass(frozen=True)
class RealtimeEvent:
    """Immutable notification delivered to channel subscribers."""

    type: str
    channel: str
    data: Any
    timestamp: int  # ms since epoch
    actor_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (the client protocol calls the actor ``userId``)."""
        payload: dict[str, Any] = {
            "type": self.type,
            "channel": self.channel,
            "data": self.data,
            "timestamp": self.timestamp,
        }
        if self.actor_id is not None:
            payload["userId"] = self.actor_id
        return payload


EventCallback = Callable[[RealtimeEvent], None]
Disposer = Callable[[], None]


# ==================== Payloads ====================


class PostEvent(TypedDict, total=False):
    id: int
    topicId: int
    postNumber: int
    userId: int
    username: str
    raw: str
    cooked: str


class TopicEvent(TypedDict):
    id: int
    title: str
    categoryId: int | None
    userId: int
    username: str


class NotificationEvent(TypedDict):
    id: int
    notificationType: int
    data: dict[str, Any]
    topicId: int | None
    postId: int | None


class PresenceEvent(TypedDict):
    userId: int
    username: str
    channel: str


class TypingEvent(TypedDict):
    userId: int
    username: str
    topicId: int


class OnlineUser(TypedDict):
    userId: int
    username: str


# ==================== Channels ====================


def channel_name(kind: ChannelType | str, id: int | str | None = None) -> str:
    """
    Build a channel name for subscriptions.

    Examples:
        channel_name(ChannelType.TOPIC, 5) -> "/topic/5"
        channel_name("global") -> "/global"
    """
    kind = ChannelType(kind)
    if kind is ChannelType.GLOBAL or id is None:
        return GLOBAL_CHANNEL
    return f"/{kind.value}/{id}"


def private_channel_owner(channel: str) -> str | None:
    """Return the user id a ``/user/{id}`` channel belongs to, else None."""
    if not channel.startswith(USER_CHANNEL_PREFIX):
        return None
    return channel.split("/")[2]
