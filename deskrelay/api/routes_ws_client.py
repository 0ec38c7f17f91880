# deskrelay/api/routes_ws_client.py
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from deskrelay.api.deps import get_clients_ws, get_inbound_ws

log = logging.getLogger("ws.clients")

router = APIRouter(tags=["ws-client"])


@router.websocket("/ws/client")
async def client_websocket(
    websocket: WebSocket,
    clients = Depends(get_clients_ws),
    inbound = Depends(get_inbound_ws),
):
    client = await clients.connect(websocket)
    cid = client.connection_id

    # estado inicial do client
    await clients.send_config_data(cid)
    await clients.send_settings_data(cid)
    await clients.send_mappings(cid)

    try:
        while True:
            text = await websocket.receive_text()
            try:
                msg = json.loads(text)
            except json.JSONDecodeError:
                await clients.send_error(cid, "Invalid JSON")
                continue
            if not isinstance(msg, dict):
                await clients.send_error(cid, "Expected a JSON object")
                continue

            await inbound.handle(cid, msg)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        log.warning("client_connection_closed", extra={"connectionId": cid, "error": str(e)})
    finally:
        await clients.remove(cid)
