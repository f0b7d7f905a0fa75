"""
Realtime API Endpoints.

Live event stream (SSE), event publishing, presence and typing indicators.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.security import Identity, get_current_identity, get_optional_identity
from app.modules.realtime import (
    PresenceAction,
    RealtimeService,
    TypingAction,
    authorize_channels,
    get_realtime_service,
)
from app.modules.realtime.stream import SSE_HEADERS, parse_channels
from app.modules.realtime.types import STREAM_ONLY_TYPES

router = APIRouter()


# ==================== Schemas ====================


class PublishRequest(BaseModel):
    """Publish an event to a channel."""

    channel: str = Field(min_length=1)
    type: str = Field(min_length=1)
    data: Any = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v in STREAM_ONLY_TYPES:
            raise ValueError(f"'{v}' is reserved for stream frames")
        return v


class PresenceRequest(BaseModel):
    """Presence update (join / heartbeat / leave)."""

    channel: str = Field(min_length=1)
    action: PresenceAction = PresenceAction.HEARTBEAT


class TypingRequest(BaseModel):
    """Typing indicator signal."""

    model_config = ConfigDict(populate_by_name=True)

    topic_id: int = Field(alias="topicId", gt=0)
    action: TypingAction = TypingAction.START


# ==================== Event Stream ====================


@router.get("/realtime")
async def stream_events(
    channels: str | None = Query(None, description="Comma-separated channel list"),
    identity: Identity | None = Depends(get_optional_identity),
    realtime: RealtimeService = Depends(get_realtime_service),
) -> StreamingResponse:
    """
    Subscribe to realtime events via Server-Sent Events.

    Private ``/user/{id}`` channels are only joinable by that user. The
    first frame is always a ``connected`` frame listing the accepted
    channels; ``ping`` frames keep the connection alive.
    """
    user_id = identity.user_id if identity else None
    allowed = authorize_channels(parse_channels(channels), user_id)

    if not allowed:
        logger.warning(f"Rejected realtime stream for channels={channels!r} user={user_id}")
        raise HTTPException(status_code=400, detail="No valid channels")

    stream = realtime.open_stream(allowed)
    return StreamingResponse(
        stream.frames(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/realtime/publish")
async def publish_event(
    request: PublishRequest,
    identity: Identity = Depends(get_current_identity),
    realtime: RealtimeService = Depends(get_realtime_service),
) -> dict[str, Any]:
    """Publish an event to a channel (internal producers)."""
    event = realtime.store.publish(
        request.channel,
        request.type,
        request.data,
        actor_id=identity.user_id,
    )

    return {
        "success": True,
        "event": {
            "type": event.type,
            "channel": event.channel,
            "timestamp": event.timestamp,
        },
    }


@router.get("/realtime/recent")
async def get_recent_events(
    channel: str = Query(..., min_length=1),
    since: int | None = Query(None, ge=0, description="Only events after this timestamp (ms)"),
    identity: Identity | None = Depends(get_optional_identity),
    realtime: RealtimeService = Depends(get_realtime_service),
) -> dict[str, Any]:
    """Get events recently published on a channel."""
    user_id = identity.user_id if identity else None
    if not authorize_channels([channel], user_id):
        raise HTTPException(status_code=403, detail="Channel not accessible")

    events = realtime.store.recent_events(channel, since=since)
    return {
        "channel": channel,
        "events": [e.to_dict() for e in events],
    }


# ==================== Presence ====================


@router.post("/presence")
async def update_presence(
    request: PresenceRequest,
    identity: Identity = Depends(get_current_identity),
    realtime: RealtimeService = Depends(get_realtime_service),
) -> dict[str, Any]:
    """Update user presence (join / heartbeat / leave)."""
    online_count = realtime.presence.touch(
        request.channel,
        identity.user_id,
        identity.username,
        request.action,
    )

    return {"success": True, "onlineCount": online_count}


@router.get("/presence")
async def get_presence(
    channel: str = Query(..., min_length=1),
    realtime: RealtimeService = Depends(get_realtime_service),
) -> dict[str, Any]:
    """Get online users for a channel."""
    users = realtime.presence.list(channel)

    return {
        "channel": channel,
        "users": users,
        "count": len(users),
    }


# ==================== Typing ====================


@router.post("/typing")
async def update_typing(
    request: TypingRequest,
    identity: Identity = Depends(get_current_identity),
    realtime: RealtimeService = Depends(get_realtime_service),
) -> dict[str, Any]:
    """Send typing indicator."""
    typing_users = realtime.typing.signal(
        request.topic_id,
        identity.user_id,
        identity.username,
        request.action,
    )

    return {"success": True, "typingUsers": typing_users}


@router.get("/typing")
async def get_typing(
    topic_id: int = Query(..., alias="topicId", gt=0),
    realtime: RealtimeService = Depends(get_realtime_service),
) -> dict[str, Any]:
    """Get users currently typing in a topic."""
    return {
        "topicId": topic_id,
        "typingUsers": realtime.typing.list(topic_id),
    }
