"""
Integration tests for the real-time API.

Drives the FastAPI app end to end with TestClient. The hub is assembled from
in-memory collaborators and placed on app.state before startup, so the
lifespan uses it instead of connecting to Redis and Postgres.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from livecoach.app.factory import create_app
from livecoach.realtime.session_hub import AUTH_FAILURE_CLOSE_CODE

pytestmark = pytest.mark.integration

WS_URL = "/api/realtime/ws"
JOIN_S1 = {"type": "join-session-room", "data": {"sessionId": "s1"}}


@pytest.fixture
def app(hub):
    app = create_app()
    app.state.hub = hub
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


class TestWebSocketLifecycle:
    def test_connect_with_query_token(self, client):
        with client.websocket_connect(f"{WS_URL}?token=token-alice") as ws:
            greeting = ws.receive_json()

        assert greeting["event_type"] == "connected"
        assert greeting["data"]["userId"] == "u-alice"
        assert greeting["sequence_number"] > 0
        assert greeting["timestamp"].endswith("Z")

    def test_connect_with_bearer_subprotocol(self, client):
        with client.websocket_connect(WS_URL, subprotocols=["bearer", "token-bob"]) as ws:
            assert ws.accepted_subprotocol == "bearer"
            assert ws.receive_json()["data"]["userId"] == "u-bob"

    @pytest.mark.parametrize("query", ["", "?token=forged", "?token=token-ghost", "?token=token-gone"])
    def test_refused_credentials_close_the_socket(self, client, hub, query):
        with client.websocket_connect(f"{WS_URL}{query}") as ws:
            error = ws.receive_json()
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert error["event_type"] == "error"
        assert error["data"]["user_friendly"] == "Authentication failed"
        assert exc_info.value.code == AUTH_FAILURE_CLOSE_CODE
        assert hub.directory.connection_count() == 0

    def test_invalid_frame_keeps_connection_open(self, client):
        with client.websocket_connect(f"{WS_URL}?token=token-alice") as ws:
            ws.receive_json()
            ws.send_text("{broken")
            error = ws.receive_json()
            ws.send_json({"type": "ping", "data": {}})
            pong = ws.receive_json()

        assert error["data"]["error_type"] == "invalid_message"
        assert pong["event_type"] == "pong"

    def test_chat_between_two_clients(self, client, store):
        with client.websocket_connect(f"{WS_URL}?token=token-alice") as alice:
            alice.receive_json()
            alice.send_json(JOIN_S1)
            assert alice.receive_json()["event_type"] == "room-joined"

            with client.websocket_connect(f"{WS_URL}?token=token-bob") as bob:
                bob.receive_json()
                bob.send_json(JOIN_S1)
                assert bob.receive_json()["event_type"] == "room-joined"
                assert alice.receive_json()["event_type"] == "user-joined-session"

                alice.send_json(
                    {"type": "chat-message", "data": {"sessionId": "s1", "body": "Good set!", "kind": "text"}}
                )
                to_alice = alice.receive_json()
                to_bob = bob.receive_json()

        assert to_alice["event_type"] == to_bob["event_type"] == "chat-message"
        assert to_alice["data"]["id"] == to_bob["data"]["id"]
        assert to_bob["data"]["senderName"] == "Alice"

        history = client.get("/api/realtime/sessions/s1/chat").json()
        assert [m["body"] for m in history["messages"]] == ["Good set!"]

    def test_disconnect_releases_memberships(self, client, hub):
        with client.websocket_connect(f"{WS_URL}?token=token-alice") as ws:
            ws.receive_json()
            ws.send_json(JOIN_S1)
            ws.receive_json()
            assert hub.directory.room_count() == 2

        # closing the first socket runs its cleanup before the session exits
        with client.websocket_connect(f"{WS_URL}?token=token-bob") as ws:
            ws.receive_json()
            ws.send_json({"type": "ping", "data": {}})
            ws.receive_json()
            assert hub.directory.connected_user_ids() == {"u-bob"}
            assert hub.directory.room_count() == 1


class TestHttpRoutes:
    def test_health(self, client):
        body = client.get("/api/realtime/health").json()

        assert body["status"] == "healthy"
        assert body["store"] == "up"
        assert "heart-rate-alerts" in body["features"]
        assert body["connections"] == 0
        assert body["users"] == 0
        assert "connected_users" not in body

    def test_health_reports_degraded_store(self, client, store):
        store.fail_reads = True
        assert client.get("/api/realtime/health").json()["status"] == "degraded"

    def test_connected_users(self, client):
        with client.websocket_connect(f"{WS_URL}?token=token-alice") as a, client.websocket_connect(
            f"{WS_URL}?token=token-alice"
        ) as b:
            a.receive_json()
            b.receive_json()
            body = client.get("/api/realtime/connected-users").json()

        assert body == {"users": ["u-alice"], "count": 1}

    def test_targeted_broadcast(self, client):
        with client.websocket_connect(f"{WS_URL}?token=token-alice") as alice:
            alice.receive_json()
            response = client.post("/api/realtime/broadcast", json={"data": {"notice": "hi"}, "userIds": ["u-alice"]})
            event = alice.receive_json()

        assert response.json() == {"delivered": 1, "failed": 0}
        assert event["event_type"] == "broadcast"
        assert event["data"] == {"notice": "hi"}
        assert event["room_id"] == "user:u-alice"

    def test_broadcast_to_everyone(self, client):
        with client.websocket_connect(f"{WS_URL}?token=token-alice") as alice:
            alice.receive_json()
            response = client.post("/api/realtime/broadcast", json={"data": {"notice": "maintenance"}})
            assert alice.receive_json()["data"] == {"notice": "maintenance"}

        assert response.json()["delivered"] == 1

    @pytest.mark.parametrize("user_ids", [[""], ["   "], ["u-alice", ""]])
    def test_broadcast_rejects_blank_user_ids(self, client, user_ids):
        response = client.post("/api/realtime/broadcast", json={"data": {"x": 1}, "userIds": user_ids})

        assert response.status_code == 422

    def test_broadcast_strips_user_ids(self, client):
        with client.websocket_connect(f"{WS_URL}?token=token-alice") as alice:
            alice.receive_json()
            response = client.post("/api/realtime/broadcast", json={"data": {"x": 1}, "userIds": [" u-alice "]})
            event = alice.receive_json()

        assert response.json() == {"delivered": 1, "failed": 0}
        assert event["room_id"] == "user:u-alice"

    def test_heart_rate_history(self, client):
        with client.websocket_connect(f"{WS_URL}?token=token-alice") as ws:
            ws.receive_json()
            for bpm in (70, 72, 74):
                ws.send_json({"type": "heart-rate-sample", "data": {"bpm": bpm}})
                ws.receive_json()

        body = client.get("/api/realtime/users/u-alice/heart-rate").json()
        assert [s["bpm"] for s in body["samples"]] == [70, 72, 74]

    def test_chat_history_since_filter(self, client, store):
        store.lists["chat:session:s9"] = [{"id": "1", "timestamp": 10.0}, {"id": "2", "timestamp": 20.0}]

        body = client.get("/api/realtime/sessions/s9/chat", params={"since": 15}).json()

        assert [m["id"] for m in body["messages"]] == ["2"]

    def test_history_store_outage_is_503(self, client, store):
        store.fail_reads = True
        assert client.get("/api/realtime/sessions/s1/chat").status_code == 503
        assert client.get("/api/realtime/users/u-alice/heart-rate").status_code == 503


class TestWithoutHub:
    def test_websocket_refused_when_hub_missing(self):
        client = TestClient(create_app())
        with client.websocket_connect(WS_URL) as ws:
            assert ws.receive_json()["event_type"] == "error"
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
        assert exc_info.value.code == 1013

    def test_http_503_when_hub_missing(self):
        client = TestClient(create_app())
        assert client.get("/api/realtime/health").status_code == 503
