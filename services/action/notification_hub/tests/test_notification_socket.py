"""WebSocket route tests for the Notification Hub."""

from __future__ import annotations

from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from services.action.notification_hub.api import register_routes
from services.action.notification_hub.config import NotificationHubSettings
from services.action.notification_hub.implementation import (
    DefaultNotificationHubService,
)


def _client() -> TestClient:
    app = FastAPI()
    router = APIRouter()
    register_routes(
        router=router,
        service=DefaultNotificationHubService(settings=NotificationHubSettings()),
    )
    app.include_router(router)
    return TestClient(app)


def test_socket_receives_init_and_answers_commands() -> None:
    """Connected clients should get init, then per-command acknowledgements."""
    client = _client()

    with client.websocket_connect("/ws/notifications") as socket:
        init = socket.receive_json()
        assert init == {
            "type": "init",
            "payload": {"notifications": [], "pendingEvolutions": []},
        }

        socket.send_json({"type": "ping"})
        assert socket.receive_json()["type"] == "pong"

        socket.send_json({"type": "dismiss", "payload": {"id": "notif-missing"}})
        assert socket.receive_json() == {
            "type": "dismiss_result",
            "payload": {"id": "notif-missing", "success": False},
        }

        socket.send_text("{not json")
        assert socket.receive_json()["type"] == "error"

        status = client.get("/ws/status")
        assert status.status_code == 200
        assert status.json() == {
            "connectedClients": 1,
            "pendingEvolutions": 0,
            "unreadNotifications": 0,
        }
