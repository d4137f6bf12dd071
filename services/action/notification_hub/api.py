"""FastAPI routes binding the live duplex connection to the Notification Hub."""

from __future__ import annotations

import json
from typing import Any, Mapping

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from packages.guard_shared.envelope import EnvelopeKind, EnvelopeMeta, new_meta
from packages.guard_shared.logging import get_logger
from services.action.notification_hub.domain import FrameType, frame
from services.action.notification_hub.service import NotificationHubService

_LOGGER = get_logger(__name__)


class WebSocketSubscriber:
    """Subscriber adapter that writes frames to one accepted WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def send(self, frame: Mapping[str, Any]) -> None:
        await self._websocket.send_json(dict(frame))


def _meta() -> EnvelopeMeta:
    return new_meta(kind=EnvelopeKind.COMMAND, source="http", principal="admin_ui")


def register_routes(*, router: APIRouter, service: NotificationHubService) -> None:
    """Attach the notification WebSocket and status endpoint to ``router``."""

    @router.websocket("/ws/notifications")
    async def notifications_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        subscriber = WebSocketSubscriber(websocket)
        subscribed = await service.subscribe(meta=_meta(), subscriber=subscriber)
        if not subscribed.ok:
            await websocket.close(code=1011)
            return
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    command: object = json.loads(text)
                except json.JSONDecodeError:
                    await subscriber.send(
                        frame(FrameType.ERROR, {"message": "frame is not valid JSON"})
                    )
                    continue
                await service.handle_command(
                    meta=_meta(), subscriber=subscriber, command=command
                )
        except WebSocketDisconnect:
            _LOGGER.info("notification socket disconnected")
        finally:
            await service.unsubscribe(meta=_meta(), subscriber=subscriber)

    @router.get("/ws/status")
    async def notifications_status() -> JSONResponse:
        result = await service.status(meta=_meta())
        if not result.ok or result.value is None:
            return JSONResponse(
                status_code=503,
                content={"errors": [error.message for error in result.errors]},
            )
        return JSONResponse(content=result.value.to_json())
