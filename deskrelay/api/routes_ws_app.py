# deskrelay/api/routes_ws_app.py
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from deskrelay.api.deps import get_apps_ws, get_router_ws
from deskrelay.models.apps import AppManifest
from deskrelay.services.apps.registry import App

log = logging.getLogger("ws.apps")

router = APIRouter(tags=["ws-apps"])


class WebSocketAppHandle:
    """Handle de um app que roda fora do processo e fala por websocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def to_client(self, data: dict) -> None:
        await self.websocket.send_text(json.dumps(data, default=str))

    async def stop(self) -> None:
        await self.websocket.close(code=1000)


@router.websocket("/ws/apps/{name}")
async def app_websocket(
    websocket: WebSocket,
    name: str,
    apps = Depends(get_apps_ws),
    relay = Depends(get_router_ws),
):
    await websocket.accept()

    if name not in apps:
        # app sem manifest registrado: entra com manifest mínimo
        apps.register(App(name=name, manifest=AppManifest(id=name, label=name), enabled=True))

    handle = WebSocketAppHandle(websocket)
    apps.attach(name, handle)

    try:
        # processa em ordem de chegada (um dispatch por vez)
        while True:
            text = await websocket.receive_text()
            try:
                msg = json.loads(text)
            except json.JSONDecodeError:
                log.warning("app_frame_invalid_json", extra={"app": name})
                await relay.send_error(name, "Invalid JSON")
                continue

            await relay.dispatch(name, msg if isinstance(msg, dict) else {"payload": msg})

    except WebSocketDisconnect:
        pass
    except Exception as e:
        log.warning("app_connection_closed", extra={"app": name, "error": str(e)})
    finally:
        # só limpa se esta conexão ainda é a dona do app
        if apps.detach(name, handle=handle):
            relay.inputs.cancel(name)
