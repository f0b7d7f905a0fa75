"""
Presence Tracker - ephemeral "who is here" state per channel.

Clients send heartbeats; entries not refreshed within the timeout are
evicted by a periodic sweep, which publishes the matching leave event.
"""

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from app.modules.realtime.clock import Clock, TimerHandle
from app.modules.realtime.event_store import EventStore
from app.modules.realtime.types import EventType, OnlineUser, PresenceEvent

PRESENCE_TIMEOUT = 60.0  # seconds
SWEEP_INTERVAL = 30.0


class PresenceAction(str, Enum):
    JOIN = "join"
    HEARTBEAT = "heartbeat"
    LEAVE = "leave"


@dataclass
class PresenceEntry:
    username: str
    last_seen: int  # ms


class PresenceTracker:
    """
    Tracks users present in each channel.

    A user may be present in several channels at once; there is no
    cross-channel registry. Not thread-safe: call it from the event loop
    only, as the async endpoints do.

    Usage:
        presence = PresenceTracker(store, clock)
        presence.start()
        count = presence.touch("/topic/5", 7, "alice", PresenceAction.JOIN)
        users = presence.list("/topic/5")
    """

    def __init__(
        self,
        store: EventStore,
        clock: Clock,
        timeout: float = PRESENCE_TIMEOUT,
        sweep_interval: float = SWEEP_INTERVAL,
    ) -> None:
        """
        Initialize presence tracker.

        Args:
            store: Event store receiving join/leave events
            clock: Time source and scheduler
            timeout: Seconds without heartbeat before a user is considered gone
            sweep_interval: Seconds between scheduled sweeps
        """
        self.store = store
        self.clock = clock
        self.timeout_ms = int(timeout * 1000)
        self.sweep_interval = sweep_interval

        self._channels: dict[str, dict[int, PresenceEntry]] = {}
        self._sweep_timer: TimerHandle | None = None

    def start(self) -> None:
        """Start the periodic sweep."""
        if self._sweep_timer is None:
            self._sweep_timer = self.clock.call_every(self.sweep_interval, self.sweep)

    def stop(self) -> None:
        """Stop the periodic sweep."""
        if self._sweep_timer is not None:
            self._sweep_timer.cancel()
            self._sweep_timer = None

    def touch(
        self,
        channel: str,
        user_id: int,
        username: str,
        action: PresenceAction | str,
    ) -> int:
        """
        Apply a join, heartbeat or leave for a user.

        Returns:
            Online count for the channel after the update
        """
        action = PresenceAction(action)
        users = self._channels.get(channel)

        if action is PresenceAction.LEAVE:
            if users is None or user_id not in users:
                return self.online_count(channel)
            del users[user_id]
            count = len(users)
            if not users:
                del self._channels[channel]
            logger.debug(f"User {username} left {channel}")
            self._publish(channel, EventType.PRESENCE_LEAVE, user_id, username)
            return count

        if users is None:
            users = self._channels[channel] = {}

        was_present = user_id in users
        users[user_id] = PresenceEntry(username=username, last_seen=self.clock.now_ms())
        count = len(users)

        if not was_present:
            logger.debug(f"User {username} joined {channel}")
            self._publish(channel, EventType.PRESENCE_JOIN, user_id, username)

        return count

    def sweep(self) -> int:
        """
        Evict entries whose last heartbeat is older than the timeout.

        Returns:
            Number of evicted entries
        """
        now = self.clock.now_ms()
        evicted = 0

        for channel in list(self._channels):
            users = self._channels.get(channel)
            if users is None:
                continue
            stale = [
                (user_id, entry)
                for user_id, entry in users.items()
                if now - entry.last_seen > self.timeout_ms
            ]
            for user_id, _ in stale:
                del users[user_id]
            if not users:
                del self._channels[channel]

            # Publish after the map is consistent; subscribers may call back in
            for user_id, entry in stale:
                evicted += 1
                self._publish(channel, EventType.PRESENCE_LEAVE, user_id, entry.username)

        if evicted:
            logger.debug(f"Presence sweep evicted {evicted} stale entries")
        return evicted

    def list(self, channel: str) -> list[OnlineUser]:
        """Get users currently present in a channel."""
        self.sweep()
        users = self._channels.get(channel, {})
        return [
            {"userId": user_id, "username": entry.username}
            for user_id, entry in users.items()
        ]

    def online_count(self, channel: str) -> int:
        return len(self._channels.get(channel, ()))

    def _publish(
        self,
        channel: str,
        type: EventType,
        user_id: int,
        username: str,
    ) -> None:
        payload: PresenceEvent = {
            "userId": user_id,
            "username": username,
            "channel": channel,
        }
        self.store.publish(channel, type, payload)
