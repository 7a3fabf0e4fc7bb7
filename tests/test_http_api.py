from __future__ import annotations

from fastapi.testclient import TestClient

from afk_bridge.adapters.http_api import create_app
from afk_bridge.core.commands import CommandSurface
from afk_bridge.core.types import CommandResult, ConnectionState, Coordinates, SessionStatus, WorldSnapshot


class StubSession:
    def __init__(self):
        self.state = ConnectionState.CONNECTED


class StubManager:
    """Answers commands inline so routes can be tested without the consumer loop."""

    def __init__(self):
        self.session = StubSession()
        self.calls: list[tuple] = []
        self.fail_status = False

    def status(self) -> SessionStatus:
        return SessionStatus(
            state=self.session.state,
            should_join=True,
            reconnect_attempts=0,
            max_reconnect_attempts=10,
            snapshot=WorldSnapshot(world="overworld", position=Coordinates(1.0, 2.0, 3.0), health=18),
            safety_enabled=True,
            server="play.example.net:19132",
            username="AfkBot",
        )

    async def get_status(self):
        if self.fail_status:
            raise RuntimeError("consumer crashed")
        return self.status()

    async def request_connect(self, operator=None):
        self.calls.append(("connect", operator))
        return CommandResult(True, "Connection initiated")

    async def request_disconnect(self, reason="operator"):
        self.calls.append(("disconnect", reason))
        return CommandResult(True, "Bot disconnected")

    async def send_chat(self, text):
        self.calls.append(("chat", text))
        return CommandResult(True, "Message sent")

    async def set_safety_enabled(self, enabled):
        self.calls.append(("safety", enabled))
        return CommandResult(True, "Safety monitoring enabled" if enabled else "Safety monitoring disabled")


def _client(manager=None, **kwargs):
    manager = manager or StubManager()
    app = create_app(CommandSurface(manager), **kwargs)
    return TestClient(app, raise_server_exceptions=False), manager


def test_index_and_health():
    client, _ = _client(service_info=lambda: {"discord": {"connected": False}})
    index = client.get("/").json()
    assert "POST /chat" in index["endpoints"]
    assert index["game"] == {"server": "play.example.net:19132", "connected": True}

    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["game"]["coordinates"] == {"x": 1.0, "y": 2.0, "z": 3.0}
    assert health["discord"] == {"connected": False}


def test_status_payload():
    client, _ = _client()
    body = client.get("/status").json()
    assert body["game"]["health"] == 18
    assert body["game"]["state"] == "connected"
    assert body["game"]["auth_required"] is False
    assert "uptime" in body and "pid" in body


def test_control_endpoints_delegate():
    client, manager = _client()
    assert client.post("/connect").json() == {"success": True, "message": "Connection initiated"}
    assert client.post("/chat", json={"message": "hello"}).json()["success"] is True
    assert client.post("/safety", json={"enabled": False}).json()["message"] == "Safety monitoring disabled"
    assert client.post("/disconnect").json()["success"] is True
    assert manager.calls == [
        ("connect", None),
        ("chat", "hello"),
        ("safety", False),
        ("disconnect", "operator:api"),
    ]


def test_chat_validation_and_not_connected():
    client, manager = _client()
    assert client.post("/chat", json={}).json() == {"success": False, "message": "Invalid message"}
    assert client.post("/safety", json={"enabled": "yes"}).json()["success"] is False
    manager.session.state = ConnectionState.DISCONNECTED
    assert client.post("/chat", json={"message": "hi"}).json() == {"success": False, "message": "Bot not connected"}
    assert manager.calls == []


def test_unknown_route_lists_endpoints():
    client, _ = _client()
    response = client.get("/nope")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert "/status" in body["availableEndpoints"]


def test_internal_error_is_json():
    manager = StubManager()
    manager.fail_status = True
    client, _ = _client(manager)
    response = client.get("/status")
    assert response.status_code == 500
    assert response.json()["message"] == "Internal server error"
