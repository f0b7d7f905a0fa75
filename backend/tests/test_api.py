"""
Tests for the realtime HTTP endpoints.
"""

import pytest

from app.core.security import create_access_token
from app.modules.realtime import EventType

API = "/api/v1/forum"


def auth_headers(user_id: int, username: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, username)}"}


class TestAuthentication:
    """Identity-requiring endpoints."""

    def test_presence_requires_identity(self, client, service):
        response = client.post(f"{API}/presence", json={"channel": "/topic/1", "action": "join"})
        assert response.status_code == 401
        assert service.presence.online_count("/topic/1") == 0

    def test_typing_requires_identity(self, client, service):
        response = client.post(f"{API}/typing", json={"topicId": 1, "action": "start"})
        assert response.status_code == 401
        assert service.typing.list(1) == []

    def test_publish_requires_identity(self, client):
        response = client.post(f"{API}/realtime/publish", json={"channel": "/topic/1", "type": "post:created"})
        assert response.status_code == 401

    def test_invalid_token_rejected(self, client):
        response = client.post(
            f"{API}/presence",
            json={"channel": "/topic/1", "action": "join"},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401


class TestPublish:
    """Producer entry point."""

    def test_publish_event(self, client, service):
        received = []
        service.store.subscribe("/topic/5", received.append)

        response = client.post(
            f"{API}/realtime/publish",
            json={"channel": "/topic/5", "type": "post:created", "data": {"postId": 99}},
            headers=auth_headers(7, "alice"),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["event"] == {
            "type": "post:created",
            "channel": "/topic/5",
            "timestamp": service.clock.now_ms(),
        }
        assert received[0].data == {"postId": 99}
        assert received[0].actor_id == 7

    def test_publish_missing_type_rejected(self, client, service):
        received = []
        service.store.subscribe("/topic/5", received.append)

        response = client.post(
            f"{API}/realtime/publish",
            json={"channel": "/topic/5", "type": ""},
            headers=auth_headers(7, "alice"),
        )

        assert response.status_code == 422
        assert received == []

    @pytest.mark.parametrize("reserved", ["ping", "connected"])
    def test_publish_stream_frame_type_rejected(self, client, service, reserved):
        received = []
        service.store.subscribe("/topic/5", received.append)

        response = client.post(
            f"{API}/realtime/publish",
            json={"channel": "/topic/5", "type": reserved, "data": {}},
            headers=auth_headers(7, "alice"),
        )

        assert response.status_code == 422
        assert received == []


class TestStreamRejection:
    def test_other_users_private_channel(self, client, service):
        response = client.get(
            f"{API}/realtime",
            params={"channels": "/user/42"},
            headers=auth_headers(7, "bob"),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "No valid channels"
        assert service.store.subscriber_count("/user/42") == 0
        assert service.stream_count == 0


class TestRecentEvents:
    def test_recent_events(self, client, service):
        service.store.publish("/topic/5", EventType.POST_CREATED, {"postId": 1})

        response = client.get(f"{API}/realtime/recent", params={"channel": "/topic/5"})

        assert response.status_code == 200
        events = response.json()["events"]
        assert [e["data"] for e in events] == [{"postId": 1}]

    def test_private_recent_events_forbidden(self, client, service):
        service.store.publish("/user/42", EventType.NOTIFICATION, {"id": 1})

        response = client.get(
            f"{API}/realtime/recent",
            params={"channel": "/user/42"},
            headers=auth_headers(7, "bob"),
        )
        assert response.status_code == 403

        response = client.get(
            f"{API}/realtime/recent",
            params={"channel": "/user/42"},
            headers=auth_headers(42, "carol"),
        )
        assert response.status_code == 200
        assert len(response.json()["events"]) == 1


class TestPresenceEndpoints:
    def test_join_and_list(self, client):
        response = client.post(
            f"{API}/presence",
            json={"channel": "/topic/1", "action": "join"},
            headers=auth_headers(1, "alice"),
        )
        assert response.json() == {"success": True, "onlineCount": 1}

        response = client.get(f"{API}/presence", params={"channel": "/topic/1"})
        assert response.json() == {
            "channel": "/topic/1",
            "users": [{"userId": 1, "username": "alice"}],
            "count": 1,
        }

    def test_leave(self, client):
        headers = auth_headers(1, "alice")
        client.post(f"{API}/presence", json={"channel": "/topic/1", "action": "join"}, headers=headers)

        response = client.post(
            f"{API}/presence",
            json={"channel": "/topic/1", "action": "leave"},
            headers=headers,
        )
        assert response.json()["onlineCount"] == 0

    def test_missing_channel_rejected(self, client, service):
        response = client.post(
            f"{API}/presence",
            json={"action": "join"},
            headers=auth_headers(1, "alice"),
        )
        assert response.status_code == 422

    def test_unknown_action_rejected(self, client, service):
        response = client.post(
            f"{API}/presence",
            json={"channel": "/topic/1", "action": "dance"},
            headers=auth_headers(1, "alice"),
        )
        assert response.status_code == 422
        assert service.presence.online_count("/topic/1") == 0


class TestTypingEndpoints:
    def test_start_and_list(self, client):
        response = client.post(
            f"{API}/typing",
            json={"topicId": 3, "action": "start"},
            headers=auth_headers(7, "bob"),
        )
        assert response.json() == {
            "success": True,
            "typingUsers": [{"userId": 7, "username": "bob"}],
        }

        response = client.get(f"{API}/typing", params={"topicId": 3})
        assert response.json()["typingUsers"] == [{"userId": 7, "username": "bob"}]

    def test_stop(self, client):
        headers = auth_headers(7, "bob")
        client.post(f"{API}/typing", json={"topicId": 3, "action": "start"}, headers=headers)

        response = client.post(f"{API}/typing", json={"topicId": 3, "action": "stop"}, headers=headers)
        assert response.json()["typingUsers"] == []

    def test_missing_topic_rejected(self, client):
        response = client.post(
            f"{API}/typing",
            json={"action": "start"},
            headers=auth_headers(7, "bob"),
        )
        assert response.status_code == 422


class TestSystem:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["streams"] == 0
