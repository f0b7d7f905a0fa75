"""
Typing Tracker - short-lived "is typing" state per topic.
"""

from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from app.modules.realtime.clock import Clock, TimerHandle
from app.modules.realtime.event_store import EventStore
from app.modules.realtime.types import (
    ChannelType,
    EventType,
    OnlineUser,
    TypingEvent,
    channel_name,
)

TYPING_TIMEOUT = 5.0  # seconds


class TypingAction(str, Enum):
    START = "start"
    STOP = "stop"


@dataclass
class TypingEntry:
    username: str
    expires_at: int  # ms
    expiry_timer: TimerHandle | None = field(default=None, repr=False)


class TypingTracker:
    """
    Tracks users typing a reply in each topic.

    Entries expire ``timeout`` seconds after the last start signal. Expiry is
    enforced twice: a one-shot check scheduled per start signal, and a
    filter applied whenever the list is read.

    Not thread-safe: call it from the event loop only, as the async
    endpoints do.
    """

    def __init__(
        self,
        store: EventStore,
        clock: Clock,
        timeout: float = TYPING_TIMEOUT,
    ) -> None:
        self.store = store
        self.clock = clock
        self.timeout = timeout
        self.timeout_ms = int(timeout * 1000)

        self._topics: dict[int, dict[int, TypingEntry]] = {}

    def signal(
        self,
        topic_id: int,
        user_id: int,
        username: str,
        action: TypingAction | str,
    ) -> list[OnlineUser]:
        """
        Apply a start or stop signal.

        Returns:
            Users currently typing in the topic
        """
        action = TypingAction(action)
        users = self._topics.get(topic_id)

        if action is TypingAction.STOP:
            entry = users.get(user_id) if users else None
            if entry is not None:
                self._remove(topic_id, user_id)
                self._publish(topic_id, EventType.TYPING_STOP, user_id, username)
            return self.list(topic_id)

        if users is None:
            users = self._topics[topic_id] = {}

        previous = users.get(user_id)
        if previous is not None and previous.expiry_timer is not None:
            previous.expiry_timer.cancel()

        entry = TypingEntry(
            username=username,
            expires_at=self.clock.now_ms() + self.timeout_ms,
        )
        users[user_id] = entry
        entry.expiry_timer = self.clock.call_later(
            self.timeout,
            lambda: self._expire(topic_id, user_id),
        )

        if previous is None:
            logger.debug(f"User {username} started typing in topic {topic_id}")
            self._publish(topic_id, EventType.TYPING_START, user_id, username)

        return self.list(topic_id)

    def list(self, topic_id: int) -> list[OnlineUser]:
        """Get users typing in a topic, skipping entries already past expiry."""
        now = self.clock.now_ms()
        users = self._topics.get(topic_id, {})
        return [
            {"userId": user_id, "username": entry.username}
            for user_id, entry in users.items()
            if entry.expires_at > now
        ]

    def stop(self) -> None:
        """Cancel all pending expiry checks."""
        for users in self._topics.values():
            for entry in users.values():
                if entry.expiry_timer is not None:
                    entry.expiry_timer.cancel()
                    entry.expiry_timer = None

    def _expire(self, topic_id: int, user_id: int) -> None:
        entry = self._topics.get(topic_id, {}).get(user_id)
        if entry is None:
            return
        now = self.clock.now_ms()
        if entry.expires_at > now:
            # Timer fired early relative to the wall clock; check again at expiry
            entry.expiry_timer = self.clock.call_later(
                (entry.expires_at - now) / 1000,
                lambda: self._expire(topic_id, user_id),
            )
            return
        self._remove(topic_id, user_id)
        logger.debug(f"Typing indicator for {entry.username} expired in topic {topic_id}")
        self._publish(topic_id, EventType.TYPING_STOP, user_id, entry.username)

    def _remove(self, topic_id: int, user_id: int) -> None:
        users = self._topics[topic_id]
        entry = users.pop(user_id)
        if entry.expiry_timer is not None:
            entry.expiry_timer.cancel()
        if not users:
            del self._topics[topic_id]

    def _publish(
        self,
        topic_id: int,
        type: EventType,
        user_id: int,
        username: str,
    ) -> None:
        payload: TypingEvent = {
            "userId": user_id,
            "username": username,
            "topicId": topic_id,
        }
        self.store.publish(channel_name(ChannelType.TOPIC, topic_id), type, payload)
